"""
Claude chat service for invoice and stock analytics

Runs one conversational turn as a bounded tool-use loop against the
Anthropic Messages API and streams what happens as event dicts:

    start -> (start_step, text_delta*, tool_call*, tool_result*)* -> finish

Tool calls requested in one step run concurrently in worker threads, each
with its own timeout. A failed or timed-out tool becomes an error tool_result
for the model to explain; it never ends the turn. The loop stops when the
model answers without tools or after CHAT_MAX_STEPS model calls.

Author: TM3
Date: 2025-11-02
"""
import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Optional

import anthropic

from ainoc.core.auth import AuthState, Unauthenticated
from ainoc.core.config import settings
from ainoc.services.response_packaging import UsageTotals, extract_document_links, split_document_links
from ainoc.services.tool_catalog import ToolCatalog, ToolError, tool_catalog

logger = logging.getLogger(__name__)

# ============================================================================
# CONFIGURATION
# ============================================================================

MAX_HISTORY_TOKENS = 12000

GENERIC_TOOL_ERROR = "The data query failed because of an internal error. Try again or ask something else."
TOOL_TIMEOUT_ERROR = "The data query took too long and was stopped."
MODEL_FALLBACK_TEXT = "Sorry, I couldn't complete that request right now. Please try again in a moment."
RESET_SUGGESTION = "Several data queries failed in a row. Starting a new conversation may help."


def estimate_tokens(text: str) -> int:
    """Rough token estimation: ~4 chars per token."""
    return len(text) // 4


def limit_history(history: List[Dict[str, str]], max_messages: Optional[int] = None) -> List[Dict[str, str]]:
    """
    Keep the most recent messages within message and token limits.

    The trimmed history never starts with an assistant message, since the
    Messages API requires the first turn to come from the user.
    """
    max_messages = max_messages or settings.CHAT_MAX_HISTORY_MESSAGES
    limited = list(history[-max_messages:])

    total_tokens = sum(estimate_tokens(msg.get("content", "")) for msg in limited)
    while total_tokens > MAX_HISTORY_TOKENS and len(limited) > 1:
        removed = limited.pop(0)
        total_tokens -= estimate_tokens(removed.get("content", ""))

    while len(limited) > 1 and limited[0].get("role") != "user":
        limited.pop(0)

    if len(limited) < len(history):
        logger.info(f"History trimmed: {len(history)} -> {len(limited)} messages (~{total_tokens} tokens)")

    return limited


def get_system_prompt() -> str:
    """System prompt with today's date so relative periods resolve correctly."""
    today = datetime.now().strftime("%Y-%m-%d")
    return f"""You are an invoice and stock analytics assistant for a textile distribution business. Today is {today}.

Always answer in clear, natural language backed by data from the available tools. You can analyze invoices, sales trends, customer behaviour, and stock: levels, replenishment, excess stock, and stock value by category.

## Tools
- Use the list_*_distinct_values tools to find valid customers, cities, regions, agents, designs and stock attributes before filtering by them. Do not guess codes.
- Dates are YYYY-MM-DD.
- Every tool returns {{"success": ..., "data": ..., "error": ...}}. When success is false, explain the error to the user in plain words.
- If a tool reports an internal error or timeout, apologise briefly and offer an alternative; do not retry the same call more than once.

## The user's own data
When the user asks about "my invoices", "my purchases", "my history" or anything else about themselves, use the get_my_* tools. They only return the signed-in user's records. If they report that the user is not signed in, ask the user to sign in first.

## Invoice PDFs
When you share an invoice PDF, include the exact pdf_url returned by the tool; the app turns it into a download button.

## Formatting
Use Markdown: **bold** for key figures, tables for comparisons, `inline code` for material codes and invoice numbers. Amounts are in INR (₹).

After calling tools, always follow up with a human-readable explanation of the results."""


# ============================================================================
# DATA CLASSES
# ============================================================================

@dataclass
class ToolOutcome:
    """Result of one tool call, ready to go back to the model"""
    tool_use_id: str
    name: str
    output: Dict[str, Any]
    is_error: bool = False

    def to_tool_result_block(self) -> Dict[str, Any]:
        return {
            "type": "tool_result",
            "tool_use_id": self.tool_use_id,
            "content": json.dumps(self.output, ensure_ascii=False, default=str),
            "is_error": self.is_error,
        }


# ============================================================================
# MAIN SERVICE CLASS
# ============================================================================

class ClaudeChatService:
    """
    Streams one chat turn with bounded tool use.

    The Anthropic client is injectable so tests can drive the loop with a
    scripted model.
    """

    def __init__(
        self,
        client: Optional[Any] = None,
        catalog: ToolCatalog = tool_catalog,
        model: Optional[str] = None,
        max_steps: Optional[int] = None,
        tool_timeout: Optional[float] = None,
        max_consecutive_failures: Optional[int] = None,
    ):
        if client is None:
            if not settings.ANTHROPIC_API_KEY:
                raise ValueError("ANTHROPIC_API_KEY environment variable not set")
            client = anthropic.AsyncAnthropic(api_key=settings.ANTHROPIC_API_KEY)

        self.client = client
        self.catalog = catalog
        self.model = model or settings.CLAUDE_MODEL
        self.max_steps = max_steps or settings.CHAT_MAX_STEPS
        self.tool_timeout = tool_timeout or settings.TOOL_TIMEOUT_SECONDS
        self.max_consecutive_failures = max_consecutive_failures or settings.MAX_CONSECUTIVE_TOOL_FAILURES
        self._tools = catalog.anthropic_tools()
        logger.info(f"ClaudeChatService initialized with model: {self.model}, {len(self._tools)} tools")

    async def stream_turn(
        self,
        history: List[Dict[str, str]],
        auth: Optional[AuthState] = None,
    ) -> AsyncIterator[Dict[str, Any]]:
        """
        Run one turn and yield stream events.

        Args:
            history: Conversation so far, [{"role": "user"|"assistant", "content": "..."}],
                     ending with the user's new message
            auth: Caller's auth state, handed to every tool call
        """
        auth = auth if auth is not None else Unauthenticated()
        messages: List[Dict[str, Any]] = [
            {"role": msg["role"], "content": msg["content"]} for msg in limit_history(history)
        ]

        usage = UsageTotals()
        answer_parts: List[str] = []
        tools_used: List[str] = []
        consecutive_failures = 0
        reset_suggested = False
        finish_reason = "step_limit"

        yield {"type": "start", "model": self.model}

        for step in range(1, self.max_steps + 1):
            yield {"type": "start_step", "step": step}

            try:
                async with self.client.messages.stream(
                    model=self.model,
                    max_tokens=settings.CLAUDE_MAX_TOKENS,
                    system=get_system_prompt(),
                    tools=self._tools,
                    messages=messages,
                ) as stream:
                    async for text in stream.text_stream:
                        answer_parts.append(text)
                        yield {"type": "text_delta", "delta": text}
                    response = await stream.get_final_message()
            except Exception as e:
                if isinstance(e, anthropic.APIError):
                    logger.error(f"Model call failed on step {step}: {e}")
                else:
                    logger.exception(f"Unexpected error while streaming step {step}")
                answer_parts.append(MODEL_FALLBACK_TEXT)
                yield {"type": "text_delta", "delta": MODEL_FALLBACK_TEXT}
                yield {"type": "error", "error": MODEL_FALLBACK_TEXT}
                finish_reason = "error"
                break

            usage.add(getattr(response, "usage", None))
            tool_uses = [block for block in response.content if block.type == "tool_use"]

            if not tool_uses:
                finish_reason = "length" if response.stop_reason == "max_tokens" else "stop"
                break

            if step == self.max_steps:
                logger.warning(f"Step limit of {self.max_steps} reached with pending tool calls")
                break

            for tool_use in tool_uses:
                tools_used.append(tool_use.name)
                yield {
                    "type": "tool_call",
                    "tool_call_id": tool_use.id,
                    "tool_name": tool_use.name,
                    "input": tool_use.input,
                }

            outcomes = await asyncio.gather(*(self._run_tool(tool_use, auth) for tool_use in tool_uses))

            for outcome in outcomes:
                yield {
                    "type": "tool_result",
                    "tool_call_id": outcome.tool_use_id,
                    "tool_name": outcome.name,
                    "output": outcome.output,
                    "is_error": outcome.is_error,
                }
                consecutive_failures = consecutive_failures + 1 if outcome.is_error else 0

            if consecutive_failures > self.max_consecutive_failures and not reset_suggested:
                reset_suggested = True
                yield {"type": "reset_suggested", "message": RESET_SUGGESTION}

            messages.append({"role": "assistant", "content": response.content})
            messages.append({"role": "user", "content": [o.to_tool_result_block() for o in outcomes]})

        answer = "".join(answer_parts)
        metadata = usage.to_metadata()
        logger.info(
            f"Turn finished ({finish_reason}). Tools used: {tools_used}, "
            f"Tokens: {metadata.input_tokens}/{metadata.output_tokens}"
        )

        yield {
            "type": "finish",
            "finish_reason": finish_reason,
            "usage": metadata.model_dump(),
            "documents": [link.model_dump() for link in extract_document_links(answer)],
            "content_parts": split_document_links(answer),
            "tools_used": tools_used,
            "reset_suggested": reset_suggested,
        }

    async def _run_tool(self, tool_use: Any, auth: AuthState) -> ToolOutcome:
        """Execute one tool call off the event loop; failures become error outcomes."""
        name = tool_use.name
        try:
            output = await asyncio.wait_for(
                asyncio.to_thread(self.catalog.execute, name, tool_use.input, auth),
                timeout=self.tool_timeout,
            )
            return ToolOutcome(tool_use.id, name, output)
        except ToolError as e:
            logger.warning(f"Tool dispatch rejected {name}: {e}")
            return ToolOutcome(tool_use.id, name, {"success": False, "error": str(e), "data": None}, is_error=True)
        except asyncio.TimeoutError:
            logger.error(f"Tool {name} timed out after {self.tool_timeout}s")
            return ToolOutcome(tool_use.id, name, {"success": False, "error": TOOL_TIMEOUT_ERROR, "data": None},
                               is_error=True)
        except Exception:
            logger.exception(f"Tool {name} failed")
            return ToolOutcome(tool_use.id, name, {"success": False, "error": GENERIC_TOOL_ERROR, "data": None},
                               is_error=True)


# ============================================================================
# SINGLETON INSTANCE
# ============================================================================

_service_instance: Optional[ClaudeChatService] = None


def get_chat_service() -> ClaudeChatService:
    """
    Get the singleton chat service instance.

    Raises:
        ValueError: if ANTHROPIC_API_KEY is not configured
    """
    global _service_instance
    if _service_instance is None:
        _service_instance = ClaudeChatService()
    return _service_instance
