import os
from decimal import Decimal, InvalidOperation

from dotenv import find_dotenv, load_dotenv

from ledger_ingest.logger import get_logger

logger = get_logger(__name__)


CONFIG_FILENAME = "config.yaml"

_CONFIG_FILE_PATH: str | None = None
_CONFIG_FILE_VALUES: dict[str, str] = {}

_CONFIG_KEYS = (
    "LOG_LEVEL",
    "LOG_DIR",
    "OPENAI_API_KEY",
    "OPENAI_MODEL",
    "OPENAI_BASE_URL",
    "OPENAI_TIMEOUT",
    "LEDGER_STORE_URL",
    "LEDGER_STORE_KEY",
    "REPORTING_CURRENCY",
    "FX_RATES",
    "FX_RATES_TTL",
    "DELIMITED_SAMPLE_LINES",
    "DOCUMENT_SAMPLE_LINES",
    "DOCUMENT_SAMPLE_CHARS",
    "CLASSIFY_CONCURRENCY",
    "REVIEW_SESSION_TTL",
)


def _resolve_dotenv_path() -> str | None:
    config_dir = os.getenv("CONFIG_DIR")
    if config_dir:
        candidate = os.path.join(config_dir, ".env")
        if os.path.exists(candidate):
            return candidate
    resolved = find_dotenv(usecwd=True)
    return resolved or None


def _resolve_config_path() -> str:
    config_dir = os.getenv("CONFIG_DIR")
    if config_dir:
        return os.path.join(config_dir, CONFIG_FILENAME)
    cwd = os.getcwd()
    candidate = os.path.join(cwd, "config", CONFIG_FILENAME)
    if os.path.exists(candidate):
        return candidate
    return os.path.join(cwd, CONFIG_FILENAME)


def _unquote_value(raw_value: str) -> str:
    if len(raw_value) >= 2 and raw_value[0] == raw_value[-1] and raw_value[0] in {'"', "'"}:
        return raw_value[1:-1]
    return raw_value


def read_config_file(path: str | None) -> dict[str, str]:
    """Read flat ``KEY: value`` pairs; nested YAML is not supported."""
    if not path or not os.path.exists(path):
        return {}

    values: dict[str, str] = {}
    with open(path, encoding="utf-8") as handle:
        for line in handle:
            stripped = line.strip()
            if not stripped or stripped.startswith("#") or ":" not in stripped:
                continue
            key, raw_value = stripped.split(":", 1)
            key = key.strip()
            value = raw_value.split(" #", 1)[0].strip()
            value = _unquote_value(value)
            if key and value:
                values[key] = value
    return values


def load_environment() -> None:
    global _CONFIG_FILE_PATH
    global _CONFIG_FILE_VALUES

    dotenv_path = _resolve_dotenv_path()
    if dotenv_path:
        load_dotenv(dotenv_path=dotenv_path, override=False)

    _CONFIG_FILE_PATH = _resolve_config_path()
    _CONFIG_FILE_VALUES = read_config_file(_CONFIG_FILE_PATH)

    for key in _CONFIG_KEYS:
        if key not in os.environ and key in _CONFIG_FILE_VALUES:
            os.environ[key] = _CONFIG_FILE_VALUES[key]


def get_config_path() -> str | None:
    return _CONFIG_FILE_PATH


def get_env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


def get_env_int(name: str, default: int, min_value: int | None = None) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("[ENV] Invalid %s='%s', using default %s.", name, raw, default)
        return default
    if min_value is not None and value < min_value:
        logger.warning(
            "[ENV] %s='%s' below minimum %s, using default %s.",
            name,
            raw,
            min_value,
            default,
        )
        return default
    return value


def get_env_float(name: str, default: float = 0.0) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("[ENV] Invalid %s='%s', using default %.2f.", name, raw, default)
        return default


def parse_rate_overrides(raw: str | None) -> dict[str, Decimal]:
    """Parse ``USD=4100,AED=1120`` into a currency -> rate mapping."""
    if not raw:
        return {}
    rates: dict[str, Decimal] = {}
    for part in raw.split(","):
        if "=" not in part:
            continue
        code, value = part.split("=", 1)
        code = code.strip().upper()
        try:
            rate = Decimal(value.strip())
        except InvalidOperation:
            logger.warning("[ENV] Ignoring invalid FX rate for %s: '%s'.", code, value.strip())
            continue
        if len(code) == 3 and rate > 0:
            rates[code] = rate
    return rates


_SENSITIVE_ENV_KEYS = (
    "KEY",
    "TOKEN",
    "SECRET",
    "PASSWORD",
    "AUTH",
)


def _mask_env_value(name: str, value: str) -> str:
    sanitized = value.replace("\r", "\\r").replace("\n", "\\n")
    upper_name = name.upper()
    sensitive = any(marker in upper_name for marker in _SENSITIVE_ENV_KEYS)
    if sanitized.startswith(("sk-", "eyJ", "Bearer ")):
        sensitive = True
    if not sensitive:
        return sanitized
    if len(sanitized) <= 4:
        return "****"
    return f"{sanitized[:2]}...{sanitized[-2:]}"


def log_environment() -> None:
    logger.info("[ENV] Logging configured environment variables (masked where needed).")
    for key in _CONFIG_KEYS:
        raw_value = os.getenv(key)
        value = "<unset>" if raw_value is None else _mask_env_value(key, raw_value)
        logger.info("[ENV] %s=%s", key, value)


load_environment()

DEFAULT_REPORTING_CURRENCY = "COP"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"

REPORTING_CURRENCY = get_env_str("REPORTING_CURRENCY", DEFAULT_REPORTING_CURRENCY).upper()

# Lines of a delimited file shown to the detector.
DELIMITED_SAMPLE_LINES = get_env_int("DELIMITED_SAMPLE_LINES", 5, min_value=2)
# Documents need more context to locate the transactions table.
DOCUMENT_SAMPLE_LINES = get_env_int("DOCUMENT_SAMPLE_LINES", 300, min_value=10)
DOCUMENT_SAMPLE_CHARS = get_env_int("DOCUMENT_SAMPLE_CHARS", 60_000, min_value=1_000)

CLASSIFY_CONCURRENCY = get_env_int("CLASSIFY_CONCURRENCY", 8, min_value=1)
FX_RATES_TTL = get_env_float("FX_RATES_TTL", 3600.0)
OPENAI_TIMEOUT = get_env_float("OPENAI_TIMEOUT", 60.0)
# Seconds an untouched review session is kept before it is evicted.
REVIEW_SESSION_TTL = get_env_float("REVIEW_SESSION_TTL", 6 * 3600.0)
