from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


BASE_DIR = Path(__file__).resolve().parent.parent
DEFAULT_DATA_DIR = BASE_DIR / "data"


def _resolve_path(raw_path: str | None, default_path: Path) -> Path:
    if not raw_path:
        return default_path
    path = Path(raw_path).expanduser()
    if path.is_absolute():
        return path
    return (BASE_DIR / path).resolve()


# Load .env early so path env vars are available for module-level constants.
load_dotenv()

DATA_DIR = _resolve_path(os.getenv("DATA_DIR"), DEFAULT_DATA_DIR)
DATASET1_PATH = _resolve_path(os.getenv("DATASET1_PATH"), DATA_DIR / "dataset1.csv")
DATASET2_PATH = _resolve_path(os.getenv("DATASET2_PATH"), DATA_DIR / "dataset2.csv")
DB_PATH = _resolve_path(os.getenv("DB_PATH"), DATA_DIR / "transcripts.db")


@dataclass(frozen=True)
class AppConfig:
    telegram_bot_token: str
    openai_api_key: str
    openai_model: str = "gpt-4.1-mini"
    google_places_api_key: str | None = None
    symptom_checklist_size: int = 10
    advisory_timeout_seconds: float = 45.0
    facility_search_radius_m: int = 5000
    store_transcripts: bool = True


class ConfigError(RuntimeError):
    pass


def _parse_bool(raw: str) -> bool:
    normalized = raw.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(raw)


def load_config() -> AppConfig:
    load_dotenv()

    telegram_bot_token = os.getenv("TELEGRAM_BOT_TOKEN", "").strip()
    openai_api_key = os.getenv("OPENAI_API_KEY", "").strip()
    openai_model = os.getenv("OPENAI_MODEL", "gpt-4.1-mini").strip() or "gpt-4.1-mini"
    google_places_api_key = os.getenv("GOOGLE_PLACES_API_KEY", "").strip() or None
    checklist_size_raw = os.getenv("SYMPTOM_CHECKLIST_SIZE", "10").strip()
    timeout_raw = os.getenv("ADVISORY_TIMEOUT_SECONDS", "45").strip()
    radius_raw = os.getenv("FACILITY_SEARCH_RADIUS_M", "5000").strip()
    store_transcripts_raw = os.getenv("STORE_TRANSCRIPTS", "true")

    if not telegram_bot_token:
        raise ConfigError("Missing TELEGRAM_BOT_TOKEN in environment/.env")
    if not openai_api_key:
        raise ConfigError("Missing OPENAI_API_KEY in environment/.env")

    try:
        symptom_checklist_size = int(checklist_size_raw)
        if symptom_checklist_size < 1 or symptom_checklist_size > 30:
            raise ValueError
    except ValueError as exc:
        raise ConfigError("SYMPTOM_CHECKLIST_SIZE must be an integer in range [1, 30]") from exc

    try:
        advisory_timeout_seconds = float(timeout_raw)
        if advisory_timeout_seconds <= 0 or advisory_timeout_seconds > 300:
            raise ValueError
    except ValueError as exc:
        raise ConfigError("ADVISORY_TIMEOUT_SECONDS must be a float in range (0, 300]") from exc

    try:
        facility_search_radius_m = int(radius_raw)
        if facility_search_radius_m < 100 or facility_search_radius_m > 50000:
            raise ValueError
    except ValueError as exc:
        raise ConfigError("FACILITY_SEARCH_RADIUS_M must be an integer in range [100, 50000]") from exc

    try:
        store_transcripts = _parse_bool(store_transcripts_raw)
    except ValueError as exc:
        raise ConfigError("STORE_TRANSCRIPTS must be true or false") from exc

    return AppConfig(
        telegram_bot_token=telegram_bot_token,
        openai_api_key=openai_api_key,
        openai_model=openai_model,
        google_places_api_key=google_places_api_key,
        symptom_checklist_size=symptom_checklist_size,
        advisory_timeout_seconds=advisory_timeout_seconds,
        facility_search_radius_m=facility_search_radius_m,
        store_transcripts=store_transcripts,
    )


def ensure_data_dirs() -> None:
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
