import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

DEFAULT_REGISTRY_URL = "https://npiregistry.cms.hhs.gov/api/"


def load_env() -> None:
    """Load .env from project root if present."""
    env_path = Path.cwd() / ".env"
    if not env_path.exists():
        return
    load_dotenv(dotenv_path=env_path)


@dataclass(frozen=True)
class Settings:
    registry_url: str = DEFAULT_REGISTRY_URL
    registry_version: str = "2.1"
    registry_timeout: float = 10.0
    registry_retries: int = 1
    db_path: Path = Path("data/providers.db")
    log_level: str = "INFO"
    log_dir: Path = Path("logs")
    log_to_file: bool = True
    scoring_seed: Optional[int] = None
    fallback_confidence: Optional[float] = None


def _get_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def _get_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _get_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def load_settings() -> Settings:
    """
    Build settings from PROVCHECK_* environment variables.

    Call load_env() first if values should come from a .env file.
    """
    return Settings(
        registry_url=os.getenv("PROVCHECK_REGISTRY_URL", DEFAULT_REGISTRY_URL),
        registry_version=os.getenv("PROVCHECK_REGISTRY_VERSION", "2.1"),
        registry_timeout=_get_float("PROVCHECK_REGISTRY_TIMEOUT", 10.0),
        registry_retries=_get_int("PROVCHECK_REGISTRY_RETRIES", 1),
        db_path=Path(os.getenv("PROVCHECK_DB_PATH", "data/providers.db")),
        log_level=os.getenv("PROVCHECK_LOG_LEVEL", "INFO"),
        log_dir=Path(os.getenv("PROVCHECK_LOG_DIR", "logs")),
        log_to_file=_get_bool("PROVCHECK_LOG_TO_FILE", True),
        scoring_seed=_get_int("PROVCHECK_SCORING_SEED", None),
        fallback_confidence=_get_float("PROVCHECK_FALLBACK_CONFIDENCE", None),
    )
