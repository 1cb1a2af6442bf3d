import os
import sys
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_data_dir() -> Path:
    if env := os.environ.get("SPD_DATA_DIR"):
        return Path(env)
    if sys.platform == "win32":
        base = Path(os.environ.get("LOCALAPPDATA", Path.home() / "AppData" / "Local"))
    else:
        base = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))
    return base / "sponsordesk"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SPD_",
        extra="ignore",
    )

    data_dir: Path = Path("")
    db_path: Path = Path("")
    host: str = "127.0.0.1"
    port: int = 8430
    log_level: str = "INFO"
    idempotency_ttl_hours: int = 24
    severity_grace_days: int = 0

    @model_validator(mode="after")
    def _resolve_data_paths(self) -> "Settings":
        if self.data_dir == Path(""):
            self.data_dir = _default_data_dir()
        if self.db_path == Path(""):
            self.db_path = self.data_dir / "sponsordesk.db"
        if self.severity_grace_days < 0:
            raise ValueError("severity_grace_days must be >= 0")
        return self


settings = Settings()
