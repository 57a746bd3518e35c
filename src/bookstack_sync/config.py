"""Connection configuration for the BookStack API.

Reads BookStack connection settings from CLI args, environment variables,
.env files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    BOOKSTACK_URL: BookStack instance URL (required)
    BOOKSTACK_TOKEN_ID: API token id (required)
    BOOKSTACK_TOKEN_SECRET: API token secret (required)
    BOOKSTACK_INSECURE: Skip SSL verification (optional, default: false)
    BOOKSTACK_TIMEOUT: Read timeout in seconds (optional, default: 60)
"""

import logging
import os
from dataclasses import dataclass
from urllib.parse import urlparse

logger = logging.getLogger(__name__)


@dataclass
class Config:
    base_url: str
    token_id: str
    token_secret: str
    insecure: bool = False
    debug: bool = False
    timeout: int = 60


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If URL format is invalid or credentials are empty.
    """
    config.base_url = config.base_url.strip()

    if not config.base_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid BookStack URL '{config.base_url}': must start with http:// or https://"
        )

    parsed = urlparse(config.base_url)
    if not parsed.hostname:
        raise ValueError(
            f"Invalid BookStack URL '{config.base_url}': URL must include a hostname"
        )

    config.base_url = config.base_url.removesuffix("/")

    if not config.token_id.strip():
        raise ValueError(
            "BookStack token id cannot be empty. Set BOOKSTACK_TOKEN_ID environment variable."
        )

    if not config.token_secret.strip():
        raise ValueError(
            "BookStack token secret cannot be empty. Set BOOKSTACK_TOKEN_SECRET environment variable."
        )

    if config.insecure:
        logger.warning(
            "WARNING: SSL verification disabled (insecure=True). Use only for development."
        )


def load_config(
    url: str | None = None,
    token_id: str | None = None,
    token_secret: str | None = None,
    insecure: bool = False,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        url: Override BookStack URL.
        token_id: Override API token id.
        token_secret: Override API token secret.
        insecure: Skip SSL verification (CLI flag).
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Dict of values from the YAML ``bookstack`` section.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If URL or credentials are missing after checking all
            sources.
    """
    fb = yaml_fallbacks or {}

    base_url = url or os.getenv("BOOKSTACK_URL") or fb.get("url")
    if not base_url:
        raise ValueError(
            "BookStack URL not found. Set BOOKSTACK_URL environment variable, "
            "pass --url CLI argument, or add 'url' to config.yml."
        )

    final_token_id = (
        token_id or os.getenv("BOOKSTACK_TOKEN_ID") or fb.get("token_id")
    )
    if not final_token_id:
        raise ValueError(
            "BookStack token id not found. Set BOOKSTACK_TOKEN_ID environment variable, "
            "pass --token-id CLI argument, or add 'token_id' to config.yml."
        )

    final_token_secret = (
        token_secret
        or os.getenv("BOOKSTACK_TOKEN_SECRET")
        or fb.get("token_secret")
    )
    if not final_token_secret:
        raise ValueError(
            "BookStack token secret not found. Set BOOKSTACK_TOKEN_SECRET environment variable, "
            "pass --token-secret CLI argument, or add 'token_secret' to config.yml."
        )

    def get_bool_env(key: str) -> bool | None:
        """Return True/False from env var, or None if unset."""
        val = os.getenv(key)
        if val is None:
            return None
        return val.lower() in ("true", "1", "yes", "on")

    if insecure:
        final_insecure = True
    else:
        env_insecure = get_bool_env("BOOKSTACK_INSECURE")
        if env_insecure is not None:
            final_insecure = env_insecure
        else:
            final_insecure = bool(fb.get("insecure", False))

    if debug:
        final_debug = True
    else:
        env_debug = get_bool_env("BOOKSTACK_DEBUG")
        if env_debug is not None:
            final_debug = env_debug
        else:
            final_debug = bool(fb.get("debug", False))

    timeout_raw = os.getenv("BOOKSTACK_TIMEOUT")
    if timeout_raw is not None:
        try:
            final_timeout = int(timeout_raw)
        except ValueError:
            raise ValueError(
                f"Invalid BOOKSTACK_TIMEOUT '{timeout_raw}': must be a number between 1 and 600"
            ) from None
        if not (1 <= final_timeout <= 600):
            raise ValueError(
                f"Invalid BOOKSTACK_TIMEOUT '{timeout_raw}': must be a number between 1 and 600"
            )
    elif "timeout" in fb:
        final_timeout = int(fb["timeout"])
    else:
        final_timeout = 60

    config = Config(
        base_url=base_url.strip(),
        token_id=final_token_id.strip(),
        token_secret=final_token_secret.strip(),
        insecure=final_insecure,
        debug=final_debug,
        timeout=final_timeout,
    )

    validate_config(config)

    return config
