"""
Configuration settings loaded from environment variables.

All runtime configuration lives on a single ``config`` object. Values are read
once from the environment (and an optional ``.env`` file) at import time and may be
overridden at runtime by assigning attributes, which the test suite relies on.
"""

import os
from dataclasses import dataclass
from typing import Any, Optional

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


@dataclass
class ModelTierConfig:
    """Configuration for a single LLM tier."""

    model: str
    temperature: float
    max_tokens: int
    timeout: int
    cost_per_1k_input: float
    cost_per_1k_output: float


@dataclass
class LLMConfig:
    """LLM connection settings and the three model tiers."""

    base_url: str
    small: ModelTierConfig
    medium: ModelTierConfig
    large: ModelTierConfig


@dataclass
class OAuthConfig:
    """OAuth client credentials settings."""

    endpoint: str
    client_id: str
    client_secret: str
    grant_type: str = "client_credentials"
    max_retries: int = 3
    retry_delay: int = 1


@dataclass
class SSLConfig:
    """SSL verification settings."""

    verify: bool = False
    cert_path: Optional[str] = None


def _tier(prefix: str, model: str, max_tokens: int, cost_in: float, cost_out: float) -> ModelTierConfig:
    return ModelTierConfig(
        model=os.getenv(f"LLM_MODEL_{prefix}", model),
        temperature=_env_float(f"LLM_TEMPERATURE_{prefix}", 0.3),
        max_tokens=_env_int(f"LLM_MAX_TOKENS_{prefix}", max_tokens),
        timeout=_env_int(f"LLM_TIMEOUT_{prefix}", 60),
        cost_per_1k_input=_env_float(f"LLM_COST_INPUT_{prefix}", cost_in),
        cost_per_1k_output=_env_float(f"LLM_COST_OUTPUT_{prefix}", cost_out),
    )


class Config:  # pylint: disable=too-many-instance-attributes
    # Flat settings mirror the environment one-to-one.
    """
    Singleton configuration object.

    Every instantiation returns the same object so modules importing ``config``
    and code calling ``Config()`` observe the same values.
    """

    _instance: Optional["Config"] = None

    def __new__(cls):
        if cls._instance is None:
            instance = super().__new__(cls)
            instance._load()
            cls._instance = instance
        return cls._instance

    def _load(self) -> None:
        # Logging and environment
        self.log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
        self.environment: str = os.getenv("ENVIRONMENT", "local")

        # Authentication
        self.auth_method: str = os.getenv("AUTH_METHOD", "api_key")
        self.api_key: str = os.getenv("API_KEY", "")
        self.oauth_endpoint: str = os.getenv("OAUTH_ENDPOINT", "")
        self.oauth_client_id: str = os.getenv("OAUTH_CLIENT_ID", "")
        self.oauth_client_secret: str = os.getenv("OAUTH_CLIENT_SECRET", "")
        self.oauth_grant_type: str = os.getenv("OAUTH_GRANT_TYPE", "client_credentials")
        self.oauth_max_retries: int = _env_int("OAUTH_MAX_RETRIES", 3)
        self.oauth_retry_delay: int = _env_int("OAUTH_RETRY_DELAY", 1)
        self.oauth = OAuthConfig(
            endpoint=self.oauth_endpoint,
            client_id=self.oauth_client_id,
            client_secret=self.oauth_client_secret,
            grant_type=self.oauth_grant_type,
            max_retries=self.oauth_max_retries,
            retry_delay=self.oauth_retry_delay,
        )

        # SSL
        self.ssl_verify: bool = _env_bool("SSL_VERIFY", "false")
        self.ssl_cert_path: Optional[str] = os.getenv("SSL_CERT_PATH") or None
        self.ssl = SSLConfig(verify=self.ssl_verify, cert_path=self.ssl_cert_path)

        # LLM tiers
        self.llm = LLMConfig(
            base_url=os.getenv("LLM_BASE_URL", "https://api.openai.com/v1"),
            small=_tier("SMALL", "gpt-4.1-nano", 1024, 0.0001, 0.0004),
            medium=_tier("MEDIUM", "gpt-4.1-mini", 2048, 0.0004, 0.0016),
            large=_tier("LARGE", "gpt-4.1", 4096, 0.002, 0.008),
        )

        # PostgreSQL
        self.postgres_host: str = os.getenv("POSTGRES_HOST", "localhost")
        self.postgres_port: str = os.getenv("POSTGRES_PORT", "5432")
        self.postgres_database: str = os.getenv("POSTGRES_DATABASE", "concierge")
        self.postgres_user: str = os.getenv("POSTGRES_USER", "postgres")
        self.postgres_password: str = os.getenv("POSTGRES_PASSWORD", "")
        self.bank_documents_table: str = os.getenv("BANK_DOCUMENTS_TABLE", "bank_documents")

        # Sessions and conversation memory
        self.session_ttl_minutes: int = _env_int("SESSION_TTL_MINUTES", 30)
        self.session_max_entries: int = _env_int("SESSION_MAX_ENTRIES", 10_000)
        self.max_conversation_summaries: int = _env_int("MAX_CONVERSATION_SUMMARIES", 10)
        self.max_history_turns: int = _env_int("MAX_HISTORY_TURNS", 5)
        self.default_timezone: Optional[str] = os.getenv("DEFAULT_TIMEZONE") or None

        # Monitoring
        self.monitor_enabled: bool = _env_bool("MONITOR_ENABLED", "false")

        # HTTP surface
        self.api_host: str = os.getenv("API_HOST", "0.0.0.0")
        self.api_port: int = _env_int("API_PORT", 8000)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value by attribute name.

        Args:
            key: Attribute name
            default: Value returned when the attribute is not set

        Returns:
            The configured value or the default
        """
        return getattr(self, key, default)


config = Config()
