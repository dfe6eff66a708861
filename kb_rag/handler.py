"""
Request handler: normalize the event, resolve config and knowledge base,
call Bedrock (with the one-shot session fallback) and map the outcome to an
HTTP-shaped response.

Deployed as a Lambda (`kb_rag.handler.lambda_handler`) and also served by the
FastAPI router in kb_rag/router.py.
"""
import json
import sys
import traceback
from typing import Any, Dict, Optional

from kb_rag import bedrock_kb_client
from kb_rag.config import Settings
from kb_rag.errors import ConfigurationError, UpstreamError, ValidationError
from kb_rag.payload import parse_event, resolve_knowledge_base_id

JSON_HEADERS = {"Content-Type": "application/json"}


def _log(msg: str) -> None:
    print(f"[KB HANDLER] {msg}", file=sys.stderr, flush=True)


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": dict(JSON_HEADERS),
        # Citation metadata may carry datetimes from boto3
        "body": json.dumps(body, ensure_ascii=False, default=str),
    }


def _resolve_model_arn(settings: Settings) -> str:
    model_arn = settings.sanitized_model_arn
    if not model_arn:
        raise ConfigurationError("missing model identifier: set MODEL_ARN")
    return model_arn


def handle(event: Any, client=None) -> Dict[str, Any]:
    """
    Answer one question. `client` may be injected (tests, long-lived servers);
    otherwise the shared bedrock-agent-runtime client is used.
    """
    try:
        req = parse_event(event)
        settings = Settings.from_env()
        model_arn = _resolve_model_arn(settings)
        kb_id = resolve_knowledge_base_id(req, settings.knowledge_base_default)
    except ValidationError as e:
        _log(f"Rejected request: {e.message}")
        return _response(400, {"error": e.message})
    except ConfigurationError as e:
        _log(f"ERROR: {e.message}")
        return _response(500, {"error": e.kind, "message": e.message})

    _log(f"query_chars={len(req.query)} kb={kb_id} session={'yes' if req.session_id else 'no'}")

    try:
        if client is None:
            client = bedrock_kb_client.get_client(settings)
        result = bedrock_kb_client.retrieve_and_generate(
            client,
            req.query,
            req.session_id,
            kb_id,
            model_arn,
            debug=settings.debug_kb,
        )
    except UpstreamError as e:
        _log(f"ERROR invoking Bedrock: {e.kind}: {e.message}")
        return _response(500, {"error": e.kind, "message": e.message})
    except Exception as e:
        _log(f"ERROR invoking Bedrock: {e}\n{traceback.format_exc()}")
        return _response(500, {"error": type(e).__name__, "message": str(e)})

    _log(f"Answered: chars={len(result.text)} sources={result.source_count} session={result.session_id}")
    return _response(200, {
        "generatedText": result.text,
        "sessionId": result.session_id,
        "citations": result.citations,
        "sourceCount": result.source_count,
    })


def lambda_handler(event: Dict[str, Any], context: Optional[Any] = None) -> Dict[str, Any]:
    request_id = getattr(context, "aws_request_id", None)
    if request_id:
        _log(f"request_id={request_id}")
    return handle(event)
