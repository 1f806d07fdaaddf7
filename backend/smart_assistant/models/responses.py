"""
Response models for API endpoints.

Field names are snake_case in Python and camelCase on the wire.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProgramCard(BaseModel):
    """Card-sized projection of a program document from the search index."""
    id: Optional[str] = None
    name: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    areas: List[str] = Field(default_factory=list)


class AssistantResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    quick_answer: Optional[Dict[str, Any]] = Field(None, alias="quickAnswer")
    programs: List[ProgramCard] = Field(default_factory=list)
    programs_found: int = Field(0, alias="programsFound")
    search_query: str = Field(..., alias="searchQuery")
    location: Optional[Dict[str, str]] = None
    tier: str = Field(..., description="quick_answer | local | cloudflare | azure_openai")
    skipped_llm: bool = Field(..., alias="skippedLLM")


class DirectoryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    resource: str
    data: Any
    from_cache: bool = Field(..., alias="fromCache")
    stale: bool = False


class ErrorResponse(BaseModel):
    error: str
    status_code: int
    trace_id: Optional[str] = None
