"""Request bodies for API endpoints."""
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AssistantRequest(BaseModel):
    """
    Body of POST /api/smart-assistant.

    `message` is validated by the pipeline rather than by pydantic so that a
    missing, blank or non-string message gets the assistant's own 400 body.
    Conversation history is optional (null is accepted) and not used.
    """
    model_config = ConfigDict(populate_by_name=True)

    message: Any = None
    conversation_history: Optional[List[Any]] = Field(default=None, alias="conversationHistory")
