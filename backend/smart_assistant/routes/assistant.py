"""
Smart assistant endpoint.

POST /api/smart-assistant   {"message": "...", "conversationHistory": [...]}
OPTIONS /api/smart-assistant (CORS preflight)

Rate limiting runs in RateLimitMiddleware before this handler. Errors raised
by the pipeline are rendered by the application's AssistantError handler.
"""
from fastapi import APIRouter, Request, Response, status
from fastapi.responses import JSONResponse

from smart_assistant.core.logging import get_logger
from smart_assistant.models.requests import AssistantRequest

logger = get_logger(__name__)

router = APIRouter()

CORS_HEADERS = {"Access-Control-Allow-Origin": "*"}
PREFLIGHT_HEADERS = {
    **CORS_HEADERS,
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
    "Access-Control-Max-Age": "86400",
}


@router.options("")
async def smart_assistant_preflight():
    return Response(status_code=status.HTTP_204_NO_CONTENT, headers=PREFLIGHT_HEADERS)


@router.post("")
async def smart_assistant(request: Request, body: AssistantRequest):
    """
    Resolve a free-text question into a quick answer and matching programs.

    Response body uses camelCase keys: quickAnswer, programs, programsFound,
    searchQuery, location, tier, skippedLLM.
    """
    pipeline = request.app.state.container.pipeline
    result = await pipeline.handle(body.message, body.conversation_history or [])
    return JSONResponse(
        content=result.model_dump(by_alias=True),
        headers=CORS_HEADERS,
    )
