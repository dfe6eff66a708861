"""
Shared fixtures: a clean environment per test and a fake bedrock-agent-runtime
client that replays scripted outcomes and records every call.
"""

import json

import pytest
from botocore.exceptions import ClientError

from kb_rag import bedrock_kb_client

_ENV_VARS = (
    "AWS_REGION",
    "MODEL_ARN",
    "KNOWLEDGE_BASE_ID",
    "KB_RAG_CONNECT_TIMEOUT",
    "KB_RAG_READ_TIMEOUT",
    "KB_RAG_MAX_ATTEMPTS",
    "DEBUG_KB",
)


def client_error(code: str, message: str, status: int = 400) -> ClientError:
    return ClientError(
        {"Error": {"Code": code, "Message": message}, "ResponseMetadata": {"HTTPStatusCode": status}},
        "RetrieveAndGenerate",
    )


def ok_response(text: str = "Plants turn light into energy.", session_id: str = "s1", citations=None) -> dict:
    resp = {"output": {"text": text}, "sessionId": session_id}
    if citations is not None:
        resp["citations"] = citations
    return resp


class FakeBedrockClient:
    """Returns (or raises) the scripted outcomes in order; records call kwargs."""

    def __init__(self, *outcomes) -> None:
        self.outcomes = list(outcomes)
        self.calls: list[dict] = []

    def retrieve_and_generate(self, **kwargs):
        self.calls.append(kwargs)
        if not self.outcomes:
            raise AssertionError("unexpected extra retrieve_and_generate call")
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    @property
    def session_ids(self) -> list:
        return [c.get("sessionId") for c in self.calls]


def body_of(result: dict) -> dict:
    return json.loads(result["body"])


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    bedrock_kb_client.reset_clients()
    yield
    bedrock_kb_client.reset_clients()


@pytest.fixture
def configured(monkeypatch):
    """Typical deployment config: model ARN plus a default knowledge base."""
    monkeypatch.setenv("MODEL_ARN", "arn:aws:bedrock:us-east-1::foundation-model/anthropic.claude-v2")
    monkeypatch.setenv("KNOWLEDGE_BASE_ID", "KBDEFAULT")
    return monkeypatch
