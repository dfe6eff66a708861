from typing import Any, Optional

from fastapi import APIRouter, Request, Response
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel

from kb_rag.handler import handle


class QueryRequest(BaseModel):
    # Documents the body only; the handler parses and validates the raw JSON
    # so the route answers exactly like the Lambda (400, never 422).
    query: Optional[str] = None
    prompt: Optional[str] = None
    sessionId: Optional[str] = None
    knowledgeBaseIds: Optional[Any] = None


router = APIRouter(prefix="/kb", tags=["Knowledge Base (Bedrock RetrieveAndGenerate)"])


@router.post(
    "/query",
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": QueryRequest.model_json_schema()}},
        }
    },
)
async def query_kb(request: Request):
    """Same contract as the Lambda entry point; status and body pass through unchanged."""
    raw = await request.body()
    result = await run_in_threadpool(handle, {"body": raw})
    return Response(
        content=result["body"],
        status_code=result["statusCode"],
        media_type="application/json",
    )
