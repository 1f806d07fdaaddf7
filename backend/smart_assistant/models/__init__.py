"""Pydantic models for API requests and responses."""

from .requests import AssistantRequest
from .responses import AssistantResponse, DirectoryResponse, ErrorResponse, ProgramCard

__all__ = ["AssistantRequest", "AssistantResponse", "DirectoryResponse", "ErrorResponse", "ProgramCard"]
