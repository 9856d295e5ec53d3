"""
API endpoint for the invoice and stock analytics chat

Endpoints:
- POST /api/v1/chat         - Stream one assistant turn (Server-Sent Events)
- GET  /api/v1/chat/tools   - List available tools by group
- GET  /api/v1/chat/health  - Chat service configuration status

Author: TM3
Date: 2025-11-02
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Literal

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field, model_validator

from ainoc.core.auth import AuthState, get_auth_state
from ainoc.core.config import settings
from ainoc.core.rate_limit import chat_rate_limit
from ainoc.services.chat_service import ClaudeChatService, get_chat_service
from ainoc.services.tool_catalog import (
    ADMIN_STOCK,
    INVOICE_ANALYTICS,
    SALES_ANALYSIS,
    USER_SCOPED,
    tool_catalog,
)

logger = logging.getLogger(__name__)

# ============================================================================
# ROUTER
# ============================================================================

router = APIRouter(prefix="/api/v1", tags=["chat"])


# ============================================================================
# REQUEST MODELS
# ============================================================================

class ChatMessage(BaseModel):
    """A single message in the conversation"""
    role: Literal["user", "assistant"]
    content: str = Field(..., min_length=1, max_length=8000)


class ChatRequest(BaseModel):
    """Request body: the whole conversation, ending with the user's new message"""
    messages: List[ChatMessage] = Field(..., min_length=1, max_length=200)

    @model_validator(mode="after")
    def last_message_from_user(self):
        if self.messages[-1].role != "user":
            raise ValueError("The last message must come from the user")
        return self


def format_sse(event: Dict[str, Any]) -> str:
    return f"data: {json.dumps(event, ensure_ascii=False, default=str)}\n\n"


async def _event_stream(
    request: Request,
    chat_service: ClaudeChatService,
    history: List[Dict[str, str]],
    auth: AuthState,
) -> AsyncIterator[str]:
    events = chat_service.stream_turn(history, auth)
    try:
        async for event in events:
            if await request.is_disconnected():
                logger.info("Client disconnected, cancelling chat turn")
                break
            yield format_sse(event)
    finally:
        await events.aclose()


# ============================================================================
# ENDPOINT: POST /api/v1/chat
# ============================================================================

@router.post("/chat", dependencies=[Depends(chat_rate_limit)])
async def chat(
    payload: ChatRequest,
    request: Request,
    auth: AuthState = Depends(get_auth_state),
):
    """
    Answer a question about invoices, sales or stock.

    The response is a Server-Sent Events stream; each `data:` frame is one
    JSON event (start, start_step, text_delta, tool_call, tool_result,
    reset_suggested, error, finish). The finish event carries token usage
    and any invoice PDF links found in the answer.

    Examples:
    - "What were our top 5 customers last quarter?"
    - "Show me my recent invoices"
    - "Which materials are likely to stock out this month?"
    """
    try:
        chat_service = get_chat_service()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Chat service not configured. Please contact administrator."
        )

    history = [{"role": msg.role, "content": msg.content} for msg in payload.messages]
    logger.info(f"Chat request received: {history[-1]['content'][:50]}...")

    return StreamingResponse(
        _event_stream(request, chat_service, history, auth),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


# ============================================================================
# ENDPOINT: GET /api/v1/chat/tools
# ============================================================================

@router.get("/chat/tools")
async def chat_tools():
    """Tool names exposed to the model, by capability group."""
    groups = [INVOICE_ANALYTICS, USER_SCOPED, SALES_ANALYSIS, ADMIN_STOCK]
    return {
        "total": len(tool_catalog),
        "groups": {group: tool_catalog.names(group) for group in groups},
    }


# ============================================================================
# ENDPOINT: GET /api/v1/chat/health
# ============================================================================

@router.get("/chat/health")
async def chat_health():
    """Health check for chat service configuration."""
    api_key_configured = bool(settings.ANTHROPIC_API_KEY)
    return {
        "status": "healthy" if api_key_configured else "not_configured",
        "api_key_configured": api_key_configured,
        "model": settings.CLAUDE_MODEL,
        "max_steps": settings.CHAT_MAX_STEPS,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
