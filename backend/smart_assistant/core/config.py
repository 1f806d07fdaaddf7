"""
Application settings loaded from the environment.

A .env file in the working directory is loaded first (python-dotenv), then
real environment variables take precedence. Settings are read once at
application creation and passed to components explicitly.
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

DEFAULT_DATA_DIR = Path(__file__).resolve().parent.parent / "data"

# $1.00/day budget at ~$0.000024 per keyword-extraction request
AZURE_DAILY_BUDGET_CENTS = 100
AZURE_COST_PER_REQUEST_CENTS = 0.0024
DEFAULT_AZURE_MAX_DAILY_REQUESTS = int(AZURE_DAILY_BUDGET_CENTS / AZURE_COST_PER_REQUEST_CENTS)


def _env_str(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip()


def _env_int(name: str, default: int) -> int:
    value = _env_str(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    value = _env_str(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    value = _env_str(name)
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    """Runtime configuration for the smart assistant service."""

    log_level: str = "INFO"
    log_json: bool = True
    service_name: str = "smart_assistant_api"

    redis_url: Optional[str] = None

    rate_limit_requests: int = 10
    rate_limit_window_seconds: int = 60
    fingerprint_salt_prefix: str = "baynavigator"

    azure_search_endpoint: Optional[str] = None
    azure_search_key: Optional[str] = None
    azure_search_index: str = "programs"
    search_timeout_seconds: float = 5.0

    cf_account_id: Optional[str] = None
    cf_api_token: Optional[str] = None
    cf_model: str = "@cf/meta/llama-3.1-8b-instruct"
    cf_timeout_seconds: float = 8.0

    azure_openai_endpoint: Optional[str] = None
    azure_openai_key: Optional[str] = None
    azure_openai_deployment: str = "gpt-4o-mini"
    azure_openai_timeout_seconds: float = 8.0
    azure_openai_max_daily_requests: int = DEFAULT_AZURE_MAX_DAILY_REQUESTS

    request_budget_seconds: float = 20.0

    directory_api_base: str = "https://baynavigator.org/api"
    directory_offline_mode: bool = False
    directory_timeout_seconds: float = 10.0

    reference_data_dir: Path = field(default_factory=lambda: DEFAULT_DATA_DIR)

    otlp_endpoint: Optional[str] = None


def load_settings(env_file: Optional[str] = None) -> Settings:
    """
    Build Settings from the environment.

    Args:
        env_file: Optional path to a .env file; defaults to ./.env when present

    Returns:
        Populated Settings instance
    """
    load_dotenv(env_file)

    data_dir = _env_str("REFERENCE_DATA_DIR")

    return Settings(
        log_level=_env_str("LOG_LEVEL", "INFO"),
        log_json=_env_bool("LOG_JSON", True),
        service_name=_env_str("OTEL_SERVICE_NAME", "smart_assistant_api"),
        redis_url=_env_str("REDIS_URL"),
        rate_limit_requests=_env_int("RATE_LIMIT_REQUESTS", 10),
        rate_limit_window_seconds=_env_int("RATE_LIMIT_WINDOW_SECONDS", 60),
        fingerprint_salt_prefix=_env_str("FINGERPRINT_SALT_PREFIX", "baynavigator"),
        azure_search_endpoint=_env_str("AZURE_SEARCH_ENDPOINT"),
        azure_search_key=_env_str("AZURE_SEARCH_KEY"),
        azure_search_index=_env_str("AZURE_SEARCH_INDEX", "programs"),
        search_timeout_seconds=_env_float("SEARCH_TIMEOUT_SECONDS", 5.0),
        cf_account_id=_env_str("CF_ACCOUNT_ID"),
        cf_api_token=_env_str("CF_API_TOKEN"),
        cf_model=_env_str("CF_MODEL", "@cf/meta/llama-3.1-8b-instruct"),
        cf_timeout_seconds=_env_float("CF_TIMEOUT_SECONDS", 8.0),
        azure_openai_endpoint=_env_str("AZURE_OPENAI_ENDPOINT"),
        azure_openai_key=_env_str("AZURE_OPENAI_KEY"),
        azure_openai_deployment=_env_str("AZURE_OPENAI_DEPLOYMENT", "gpt-4o-mini"),
        azure_openai_timeout_seconds=_env_float("AZURE_OPENAI_TIMEOUT_SECONDS", 8.0),
        azure_openai_max_daily_requests=_env_int(
            "AZURE_OPENAI_MAX_DAILY_REQUESTS", DEFAULT_AZURE_MAX_DAILY_REQUESTS
        ),
        request_budget_seconds=_env_float("ASSISTANT_REQUEST_BUDGET_SECONDS", 20.0),
        directory_api_base=_env_str("DIRECTORY_API_BASE", "https://baynavigator.org/api"),
        directory_offline_mode=_env_bool("DIRECTORY_OFFLINE_MODE", False),
        directory_timeout_seconds=_env_float("DIRECTORY_TIMEOUT_SECONDS", 10.0),
        reference_data_dir=Path(data_dir) if data_dir else DEFAULT_DATA_DIR,
        otlp_endpoint=_env_str("OTEL_EXPORTER_OTLP_ENDPOINT"),
    )
