import os
from dataclasses import dataclass

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    # Preview
    preview_limit: int

    # Generation defaults
    validate_platform_limits: bool
    case_insensitive_rules: bool

    # Logging
    log_level: str
    log_dir: str
    log_console: bool


def _bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def get_settings() -> Settings:
    load_dotenv()  # reads .env if present

    return Settings(
        preview_limit=int(os.getenv("ACT_GEN_PREVIEW_LIMIT", "20")),
        validate_platform_limits=_bool(os.getenv("ACT_GEN_VALIDATE_LIMITS", "false")),
        case_insensitive_rules=_bool(os.getenv("ACT_GEN_CASE_INSENSITIVE", "true")),
        log_level=os.getenv("ACT_GEN_LOG_LEVEL", "INFO").strip().upper(),
        log_dir=os.getenv("ACT_GEN_LOG_DIR", "logs"),
        log_console=_bool(os.getenv("ACT_GEN_LOG_CONSOLE", "true")),
    )
