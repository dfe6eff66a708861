import os
import re
from dataclasses import dataclass, field

from kb_rag.errors import ConfigurationError

_ARN_JUNK = re.compile(r"[\"'\s\\]")


def _env_str(name: str, default: str = ""):
    return lambda: os.environ.get(name, default)


def _env_int(name: str, default: int):
    def read() -> int:
        raw = os.environ.get(name, str(default))
        try:
            return int(raw)
        except ValueError as e:
            raise ConfigurationError(f"invalid {name}: {raw!r} is not an integer") from e
    return read


def _env_flag(name: str, default: str = "false"):
    return lambda: os.environ.get(name, default).lower() in ("1", "true", "yes")


def sanitize_model_arn(raw: str) -> str:
    """Drop quotes, whitespace and backslashes left over from how MODEL_ARN was supplied."""
    return _ARN_JUNK.sub("", raw or "")


@dataclass
class Settings:
    # Every field reads the environment when the instance is built, so
    # Settings() picks up changes made at runtime.

    # AWS / Bedrock
    aws_region: str = field(default_factory=_env_str("AWS_REGION", "us-east-1"))
    model_arn: str = field(default_factory=_env_str("MODEL_ARN"))
    default_knowledge_base_id: str = field(default_factory=_env_str("KNOWLEDGE_BASE_ID"))

    # Bedrock client timeouts (seconds)
    kb_rag_connect_timeout_secs: int = field(default_factory=_env_int("KB_RAG_CONNECT_TIMEOUT", 5))
    kb_rag_read_timeout_secs: int = field(default_factory=_env_int("KB_RAG_READ_TIMEOUT", 60))
    # botocore transport retries (throttling, 5xx); separate from the session fallback
    kb_rag_max_attempts: int = field(default_factory=_env_int("KB_RAG_MAX_ATTEMPTS", 2))

    # Debugging
    debug_kb: bool = field(default_factory=_env_flag("DEBUG_KB"))

    @classmethod
    def from_env(cls) -> "Settings":
        return cls()

    @property
    def sanitized_model_arn(self) -> str:
        return sanitize_model_arn(self.model_arn)

    @property
    def knowledge_base_default(self) -> str:
        return (self.default_knowledge_base_id or "").strip()
