import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        log_level: str,
        max_page_limit: int,
        default_page_limit: int,
        category_fuzzy_match: bool,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.log_level = log_level
        self.max_page_limit = max_page_limit
        self.default_page_limit = default_page_limit
        self.category_fuzzy_match = category_fuzzy_match


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("LEDGER_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    database_url = os.getenv("LEDGER_DATABASE_URL")
    if not database_url:
        default_db = _ensure_data_dir() / "ledger.db"
        database_url = f"sqlite:///{default_db}"
    timezone = os.getenv("LEDGER_TIMEZONE", "Europe/Berlin")
    log_level = os.getenv("LEDGER_LOG_LEVEL", "INFO").upper()
    max_page_limit = int(os.getenv("LEDGER_MAX_PAGE_LIMIT", "50"))
    default_page_limit = int(os.getenv("LEDGER_DEFAULT_PAGE_LIMIT", "10"))
    return Settings(
        database_url=database_url,
        timezone=timezone,
        log_level=log_level,
        max_page_limit=max_page_limit,
        default_page_limit=min(default_page_limit, max_page_limit),
        category_fuzzy_match=_env_flag("LEDGER_CATEGORY_FUZZY_MATCH"),
    )
