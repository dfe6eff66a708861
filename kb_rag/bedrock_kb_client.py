"""
Thin client for Bedrock Knowledge Base RetrieveAndGenerate.

- GenerationRequest: immutable description of one call (built fresh per attempt)
- retrieve_and_generate: call Bedrock; if it rejects the caller's session id,
  retry exactly once without it
- Failures are translated into UpstreamError / UpstreamSessionError at this boundary
"""
import sys
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from kb_rag.config import Settings
from kb_rag.errors import UpstreamError, UpstreamSessionError

# =========================
# Prompt & inference (fixed, not caller-configurable)
# =========================

# Bedrock substitutes $search_results$ and $query$ before generation.
PROMPT_TEMPLATE = (
    "You are a helpful Publication expert. Answer thoroughly, with clear structure.\n"
    "- Include as many relevant details as possible.\n"
    "- Use bullet points, headings, or numbered steps if suitable.\n"
    "- Cite sources from the provided context.\n"
    "\n"
    "Context: $search_results$\n"
    "\n"
    "User question: $query$"
)

TEXT_INFERENCE_CONFIG: Dict[str, Any] = {
    "temperature": 0.0,
    "topP": 1.0,
    "maxTokens": 2048,
    "stopSequences": ["\nObservation"],
}

# Error code Bedrock returns for a stale or malformed sessionId (among other input problems)
SESSION_ERROR_CODE = "ValidationException"


def _log(msg: str) -> None:
    print(f"[KB CLIENT] {msg}", file=sys.stderr, flush=True)

# =========================
# AWS Client
# =========================

_CLIENTS: Dict[Tuple[str, int, int, int], Any] = {}
_CLIENTS_LOCK = threading.Lock()


def get_client(settings: Optional[Settings] = None):
    """
    Shared bedrock-agent-runtime client, created lazily.
    One client per region/timeout combination so runtime config changes take effect.
    """
    settings = settings or Settings.from_env()
    key = (
        settings.aws_region,
        settings.kb_rag_connect_timeout_secs,
        settings.kb_rag_read_timeout_secs,
        settings.kb_rag_max_attempts,
    )
    with _CLIENTS_LOCK:
        client = _CLIENTS.get(key)
        if client is None:
            boto_cfg = Config(
                connect_timeout=settings.kb_rag_connect_timeout_secs,
                read_timeout=settings.kb_rag_read_timeout_secs,
                retries={"max_attempts": settings.kb_rag_max_attempts, "mode": "standard"},
            )
            client = boto3.client("bedrock-agent-runtime", region_name=settings.aws_region, config=boto_cfg)
            _CLIENTS[key] = client
    return client


def reset_clients() -> None:
    with _CLIENTS_LOCK:
        _CLIENTS.clear()

# =========================
# Request / result
# =========================

@dataclass(frozen=True)
class GenerationRequest:
    query: str
    knowledge_base_id: str
    model_arn: str
    session_id: Optional[str] = None

    def to_api_params(self) -> Dict[str, Any]:
        """Keyword arguments for client.retrieve_and_generate."""
        params: Dict[str, Any] = {
            "input": {"text": self.query},
            "retrieveAndGenerateConfiguration": {
                "type": "KNOWLEDGE_BASE",
                "knowledgeBaseConfiguration": {
                    "knowledgeBaseId": self.knowledge_base_id,
                    "modelArn": self.model_arn,
                    "generationConfiguration": {
                        "promptTemplate": {"textPromptTemplate": PROMPT_TEMPLATE},
                        "inferenceConfig": {"textInferenceConfig": dict(TEXT_INFERENCE_CONFIG)},
                    },
                },
            },
        }
        # Bedrock rejects an explicit null; leave the key out to start a new session
        if self.session_id:
            params["sessionId"] = self.session_id
        return params


def build_generation_request(
    query: str,
    session_id: Optional[str],
    knowledge_base_id: str,
    model_arn: str,
) -> GenerationRequest:
    return GenerationRequest(
        query=query,
        knowledge_base_id=knowledge_base_id,
        model_arn=model_arn,
        session_id=session_id or None,
    )


@dataclass(frozen=True)
class GenerationResult:
    text: str
    session_id: Optional[str]
    citations: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def source_count(self) -> int:
        return len(self.citations)

    @classmethod
    def from_response(cls, resp: Dict[str, Any]) -> "GenerationResult":
        output = resp.get("output") or {}
        return cls(
            text=output.get("text", ""),
            session_id=resp.get("sessionId"),
            citations=list(resp.get("citations") or []),
        )

# =========================
# Failure classification
# =========================

def classify_error(exc: Exception, session_supplied: bool) -> UpstreamError:
    """
    ValidationException while the caller sent a session id is treated as a
    session failure, whatever the message says. Everything else is terminal.
    """
    if isinstance(exc, ClientError):
        err = exc.response.get("Error", {}) or {}
        code = err.get("Code") or type(exc).__name__
        message = err.get("Message") or str(exc)
        if session_supplied and code == SESSION_ERROR_CODE:
            return UpstreamSessionError(code, message)
        return UpstreamError(code, message)
    return UpstreamError(type(exc).__name__, str(exc))


def _invoke(client, req: GenerationRequest, debug: bool = False) -> GenerationResult:
    if debug:
        params = req.to_api_params()
        kb_cfg = params["retrieveAndGenerateConfiguration"]["knowledgeBaseConfiguration"]
        _log(
            f"retrieve_and_generate: kb={kb_cfg['knowledgeBaseId']} model={kb_cfg['modelArn']} "
            f"session={req.session_id!r} query={req.query[:120]!r}"
        )
    try:
        resp = client.retrieve_and_generate(**req.to_api_params())
    except (ClientError, BotoCoreError) as e:
        raise classify_error(e, session_supplied=bool(req.session_id)) from e
    return GenerationResult.from_response(resp)


def retrieve_and_generate(
    client,
    query: str,
    session_id: Optional[str],
    knowledge_base_id: str,
    model_arn: str,
    debug: bool = False,
) -> GenerationResult:
    """
    Submit once with the caller's session id; on a session failure submit once
    more without it. The retry carries no session id, so it cannot recurse.
    """
    first = build_generation_request(query, session_id, knowledge_base_id, model_arn)
    try:
        return _invoke(client, first, debug=debug)
    except UpstreamSessionError as e:
        _log(f"WARN: Session invalid ({e.kind}: {e.message}), retrying with fresh session...")
    retry = build_generation_request(query, None, knowledge_base_id, model_arn)
    return _invoke(client, retry, debug=debug)
