import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        secret_key: str,
        token_max_age_secs: int = 24 * 3600,
        bcrypt_rounds: int = 12,
        recent_limit: int = 5,
        log_level: str = "INFO",
    ) -> None:
        self.database_url = database_url
        self.secret_key = secret_key
        self.token_max_age_secs = token_max_age_secs
        self.bcrypt_rounds = bcrypt_rounds
        self.recent_limit = recent_limit
        self.log_level = log_level


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("FINANCE_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    database_url = os.getenv("FINANCE_DATABASE_URL")
    if not database_url:
        default_db = _ensure_data_dir() / "finance.db"
        database_url = f"sqlite:///{default_db}"
    secret_key = os.getenv(
        "FINANCE_SECRET_KEY",
        "3f0c9a7e52d14b8e9c6a1f2d7b40e8c5a9d3e6f1b2c7a4d8e0f5b9c3a6d1e7f2",
    )
    token_max_age_secs = int(os.getenv("FINANCE_TOKEN_MAX_AGE_SECS", str(24 * 3600)))
    bcrypt_rounds = int(os.getenv("FINANCE_BCRYPT_ROUNDS", "12"))
    recent_limit = int(os.getenv("FINANCE_RECENT_LIMIT", "5"))
    log_level = os.getenv("FINANCE_LOG_LEVEL", "INFO")
    return Settings(
        database_url=database_url,
        secret_key=secret_key,
        token_max_age_secs=token_max_age_secs,
        bcrypt_rounds=bcrypt_rounds,
        recent_limit=recent_limit,
        log_level=log_level,
    )
