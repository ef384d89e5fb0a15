import os
from dataclasses import dataclass
from functools import lru_cache
from typing import List


def _env_list(name: str, default: str) -> List[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    """Runtime settings, read from PO_TICTAC_* environment variables."""
    secret_key: str = "po-tictac-dev-secret"  # Override via PO_TICTAC_SECRET_KEY outside development.
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 120
    cors_origins: tuple = ("*",)
    ai_think_time: float = 0.0
    default_difficulty: str = "optimal"
    leaderboard_limit: int = 10
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            secret_key=os.getenv("PO_TICTAC_SECRET_KEY", cls.secret_key),
            access_token_expire_minutes=int(os.getenv("PO_TICTAC_TOKEN_TTL_MINUTES", "120")),
            cors_origins=tuple(_env_list("PO_TICTAC_CORS_ORIGINS", "*")),
            ai_think_time=float(os.getenv("PO_TICTAC_AI_THINK_TIME", "0")),
            default_difficulty=os.getenv("PO_TICTAC_DEFAULT_DIFFICULTY", cls.default_difficulty),
            leaderboard_limit=int(os.getenv("PO_TICTAC_LEADERBOARD_LIMIT", "10")),
            log_level=os.getenv("PO_TICTAC_LOG_LEVEL", cls.log_level).upper(),
        )


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
