"""
Inbound event normalization.

Accepts the shapes Lambda delivers (API Gateway / function URL events with a
text or base64 body, direct invocations with a dict body, or a bare payload)
and reduces them to an InboundRequest.
"""
import base64
import binascii
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from kb_rag.errors import ValidationError

MISSING_QUERY = "Missing required field: query (or prompt)"
MISSING_KB = "No Knowledge Base ID available. Provide knowledgeBaseIds or set KNOWLEDGE_BASE_ID."


@dataclass(frozen=True)
class InboundRequest:
    query: str
    session_id: Optional[str] = None
    knowledge_base_ids: List[str] = field(default_factory=list)


def _decode_body(event: Dict[str, Any]) -> Any:
    body = event.get("body")
    # A missing or empty body means the event itself is the payload
    if not body:
        return event
    if not isinstance(body, (str, bytes, bytearray)):
        return body
    try:
        if isinstance(body, (bytes, bytearray)):
            body = body.decode("utf-8")
        if event.get("isBase64Encoded"):
            body = base64.b64decode(body, validate=True).decode("utf-8")
        return json.loads(body) if body.strip() else {}
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValidationError(f"invalid request body: {e}", field="body") from e


def _clean_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _kb_ids(value: Any) -> List[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return []
    return [v for v in value if isinstance(v, str)]


def parse_event(event: Any) -> InboundRequest:
    """Normalize the event and validate that a question is present."""
    data = _decode_body(event) if isinstance(event, dict) else event
    if not isinstance(data, dict):
        data = {}

    query = _clean_str(data.get("query")) or _clean_str(data.get("prompt"))
    if not query:
        raise ValidationError(MISSING_QUERY, field="query")

    # Session ids are opaque; only reject empties, never reformat.
    sid = data.get("sessionId")
    session_id = sid if isinstance(sid, str) and sid.strip() else None

    return InboundRequest(
        query=query,
        session_id=session_id,
        knowledge_base_ids=_kb_ids(data.get("knowledgeBaseIds")),
    )


def resolve_knowledge_base_id(req: InboundRequest, default_kb_id: Optional[str]) -> str:
    """First caller-supplied id wins, else the configured default."""
    first = _clean_str(req.knowledge_base_ids[0]) if req.knowledge_base_ids else None
    target = first or _clean_str(default_kb_id)
    if not target:
        raise ValidationError(MISSING_KB, field="knowledgeBaseIds")
    return target
