"""
Configuration - environment driven settings

Values are read from the process environment, with a .env file loaded
first when present.
"""

import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

from dotenv import load_dotenv

from heights_ai.domain.models import ProviderId


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value not in (None, "") else default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("true", "1", "yes", "on")


def _env_list(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    value = os.getenv(name)
    if not value:
        return default
    return tuple(item for item in value.split("|") if item)


DEFAULT_TRUNCATION_MARKERS: Tuple[str, ...] = (
    "...",
    "…",
    ":",
    ",",
    "such as",
    "including",
    "for example",
)


@dataclass(frozen=True)
class Settings:
    """Runtime settings"""

    # ---------- reasoning providers ----------
    claude_model: str = "anthropic/claude-3-5-sonnet-20241022"
    perplexity_model: str = "perplexity/sonar"
    anthropic_api_key: Optional[str] = None
    perplexity_api_key: Optional[str] = None
    max_tokens: int = 4000
    temperature: float = 0.7
    terminal_provider: ProviderId = ProviderId.CLAUDE

    # ---------- call limits ----------
    reasoning_timeout: float = 30.0
    data_timeout: float = 15.0
    max_retries: int = 1
    retry_delay: float = 0.5
    max_continuations: int = 2

    # ---------- data ----------
    enable_yfinance: bool = True
    max_market_data_sources: int = 3
    max_news_items: int = 10

    # ---------- cache / throttling ----------
    cache_max_size: int = 512
    quote_cache_ttl: int = 30
    news_cache_ttl: int = 900
    enable_provider_rate_limits: bool = True
    api_rate_limit_per_minute: int = 60

    # ---------- synthesis / scoring ----------
    truncation_markers: Tuple[str, ...] = DEFAULT_TRUNCATION_MARKERS
    complete_min_lines: int = 15
    confidence_weights: Tuple[float, float, float, float] = (0.3, 0.3, 0.2, 0.2)

    # ---------- logging ----------
    log_level: str = "INFO"
    log_json: bool = False
    log_file: Optional[str] = None

    cors_origins: Tuple[str, ...] = field(default=("*",))

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from HEIGHTS_* environment variables"""
        load_dotenv()
        defaults = cls()

        terminal = _env_str("HEIGHTS_TERMINAL_PROVIDER", defaults.terminal_provider.value)
        try:
            terminal_provider = ProviderId(terminal)
        except ValueError:
            terminal_provider = defaults.terminal_provider

        weights = (
            _env_float("HEIGHTS_WEIGHT_TECHNICAL", defaults.confidence_weights[0]),
            _env_float("HEIGHTS_WEIGHT_FUNDAMENTAL", defaults.confidence_weights[1]),
            _env_float("HEIGHTS_WEIGHT_MARKET", defaults.confidence_weights[2]),
            _env_float("HEIGHTS_WEIGHT_NEWS", defaults.confidence_weights[3]),
        )

        return cls(
            claude_model=_env_str("HEIGHTS_CLAUDE_MODEL", defaults.claude_model),
            perplexity_model=_env_str("HEIGHTS_PERPLEXITY_MODEL", defaults.perplexity_model),
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY") or None,
            perplexity_api_key=os.getenv("PERPLEXITY_API_KEY") or None,
            max_tokens=_env_int("HEIGHTS_MAX_TOKENS", defaults.max_tokens),
            temperature=_env_float("HEIGHTS_TEMPERATURE", defaults.temperature),
            terminal_provider=terminal_provider,
            reasoning_timeout=_env_float("HEIGHTS_REASONING_TIMEOUT", defaults.reasoning_timeout),
            data_timeout=_env_float("HEIGHTS_DATA_TIMEOUT", defaults.data_timeout),
            max_retries=_env_int("HEIGHTS_MAX_RETRIES", defaults.max_retries),
            retry_delay=_env_float("HEIGHTS_RETRY_DELAY", defaults.retry_delay),
            max_continuations=_env_int("HEIGHTS_MAX_CONTINUATIONS", defaults.max_continuations),
            enable_yfinance=_env_bool("HEIGHTS_ENABLE_YFINANCE", defaults.enable_yfinance),
            cache_max_size=_env_int("HEIGHTS_CACHE_MAX_SIZE", defaults.cache_max_size),
            quote_cache_ttl=_env_int("HEIGHTS_QUOTE_CACHE_TTL", defaults.quote_cache_ttl),
            news_cache_ttl=_env_int("HEIGHTS_NEWS_CACHE_TTL", defaults.news_cache_ttl),
            enable_provider_rate_limits=_env_bool(
                "HEIGHTS_PROVIDER_RATE_LIMITS", defaults.enable_provider_rate_limits
            ),
            api_rate_limit_per_minute=_env_int(
                "HEIGHTS_API_RATE_LIMIT", defaults.api_rate_limit_per_minute
            ),
            truncation_markers=_env_list("HEIGHTS_TRUNCATION_MARKERS", defaults.truncation_markers),
            complete_min_lines=_env_int("HEIGHTS_COMPLETE_MIN_LINES", defaults.complete_min_lines),
            confidence_weights=weights,
            log_level=_env_str("LOG_LEVEL", defaults.log_level),
            log_json=_env_bool("LOG_JSON", defaults.log_json),
            log_file=os.getenv("LOG_FILE") or None,
            cors_origins=_env_list("HEIGHTS_CORS_ORIGINS", defaults.cors_origins),
        )
