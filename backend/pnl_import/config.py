# Environment-driven settings for the P&L import service
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_CORS_ORIGINS = "http://localhost:13030"
DEFAULT_LANGFUSE_HOST = "http://localhost:3001"


def _split_csv(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


@dataclass
class Settings:
    cors_origins: List[str] = field(default_factory=lambda: [DEFAULT_CORS_ORIGINS])
    log_level: str = "INFO"
    rules_file: Optional[Path] = None
    header_scan_rows: int = 15
    langfuse_public_key: Optional[str] = None
    langfuse_secret_key: Optional[str] = None
    langfuse_host: str = DEFAULT_LANGFUSE_HOST
    langfuse_debug: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        rules_file = os.getenv("PNL_RULES_FILE")
        return cls(
            cors_origins=_split_csv(os.getenv("CORS_ORIGINS", DEFAULT_CORS_ORIGINS)),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            rules_file=Path(rules_file) if rules_file else None,
            header_scan_rows=int(os.getenv("PNL_HEADER_SCAN_ROWS", "15")),
            langfuse_public_key=os.getenv("LANGFUSE_PUBLIC_KEY"),
            langfuse_secret_key=os.getenv("LANGFUSE_SECRET_KEY"),
            langfuse_host=os.getenv("LANGFUSE_HOST", DEFAULT_LANGFUSE_HOST),
            langfuse_debug=os.getenv("LANGFUSE_DEBUG", "false").lower() == "true",
        )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create the process-wide settings."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings
