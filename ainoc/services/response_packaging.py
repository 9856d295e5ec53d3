"""
Finishing a chat turn: usage accounting and invoice document links

Usage is summed over every model call of the turn. A counter stays None
unless at least one call reported it, so "not reported" is never shown as 0.

Invoice PDF URLs in the final answer are turned into download entries
("Download Invoice 91234567") so the client can render buttons instead of
raw bucket URLs.
"""
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from ainoc.core.config import settings
from ainoc.domain.results import DocumentLink, UsageMetadata


def _pdf_url_pattern() -> "re.Pattern[str]":
    base = re.escape(settings.INVOICE_PDF_BASE_URL.rstrip("/"))
    return re.compile(base + r"/([^.\s/]+)\.pdf")


def _document_link(match: "re.Match[str]") -> DocumentLink:
    document_id = match.group(1)
    return DocumentLink(
        document_id=document_id,
        url=match.group(0),
        label=f"Download Invoice {document_id}",
        filename=f"invoice-{document_id}.pdf",
    )


@dataclass
class UsageTotals:
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    # Anthropic usage has no reasoning counter; stays None unless a provider reports one.
    reasoning_tokens: Optional[int] = None
    cached_input_tokens: Optional[int] = None

    @staticmethod
    def _plus(total: Optional[int], value: Any) -> Optional[int]:
        if value is None:
            return total
        return (total or 0) + int(value)

    def add(self, usage: Any) -> None:
        """Fold one Anthropic `usage` object (or None) into the totals."""
        if usage is None:
            return
        self.input_tokens = self._plus(self.input_tokens, getattr(usage, "input_tokens", None))
        self.output_tokens = self._plus(self.output_tokens, getattr(usage, "output_tokens", None))
        self.cached_input_tokens = self._plus(
            self.cached_input_tokens, getattr(usage, "cache_read_input_tokens", None)
        )

    def to_metadata(self) -> UsageMetadata:
        total = None
        if self.input_tokens is not None or self.output_tokens is not None:
            total = (self.input_tokens or 0) + (self.output_tokens or 0)
        return UsageMetadata(
            total_tokens=total,
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
            reasoning_tokens=self.reasoning_tokens,
            cached_input_tokens=self.cached_input_tokens,
        )


def extract_document_links(text: str) -> List[DocumentLink]:
    """Invoice PDF links in `text`, in order of first appearance, deduplicated."""
    links = []
    seen = set()
    for match in _pdf_url_pattern().finditer(text or ""):
        link = _document_link(match)
        if link.document_id in seen:
            continue
        seen.add(link.document_id)
        links.append(link)
    return links


def split_document_links(text: str) -> List[Dict[str, Union[str, Dict[str, str]]]]:
    """Break text into renderable parts: plain text and document links, in order."""
    parts = []
    cursor = 0
    for match in _pdf_url_pattern().finditer(text or ""):
        if match.start() > cursor:
            parts.append({"type": "text", "text": text[cursor:match.start()]})
        parts.append({"type": "document", "document": _document_link(match).model_dump()})
        cursor = match.end()
    if cursor < len(text or ""):
        parts.append({"type": "text", "text": text[cursor:]})
    return parts
