"""
Configuration management using Pydantic Settings
"""
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env from project root
# config.py is at: backend/esmc/core/config.py
# Project root is: backend/esmc/core/../../../
_current_file = Path(__file__).resolve()
_backend_dir = _current_file.parent.parent.parent
_project_root = _backend_dir.parent
ENV_FILE = _project_root / ".env"
# Fallback: try in backend/ directory if not found in project root
if not ENV_FILE.exists():
    ENV_FILE = _backend_dir / ".env"
if ENV_FILE.exists():
    load_dotenv(ENV_FILE, override=False)

DEFAULT_LESSONS_PATH = ".claude/memory/.esmc-lessons.json"


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "ESMC"
    app_env: str = Field(default="development", description="Application environment")
    api_host: str = Field(default="127.0.0.1", description="API host")
    api_port: int = Field(default=8000, ge=1, le=65535, description="API port")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_module_levels: Optional[str] = Field(
        default=None,
        description='Module-specific log levels (JSON string, e.g., {"esmc.services": "DEBUG"})'
    )
    log_format: str = Field(
        default="json",
        description="Log format: 'json' for structured logging, 'text' for plain text"
    )
    log_file_enabled: bool = Field(default=False, description="Enable file logging")
    log_file_path: str = Field(
        default="logs/esmc.log",
        description="Path to log file (relative to project root)"
    )
    log_file_retention: int = Field(
        default=30,
        ge=1,
        description="Number of days to keep log files"
    )
    log_sensitive_data: bool = Field(
        default=False,
        description="Enable logging of sensitive data (passwords, tokens) - NOT RECOMMENDED"
    )

    # Lessons ledger
    lessons_path: str = Field(
        default=DEFAULT_LESSONS_PATH,
        description="Path to the lessons ledger (relative to the working directory)"
    )
    lessons_max_entries: int = Field(
        default=50,
        ge=1,
        description="Maximum number of lessons kept in the ledger"
    )
    auto_lessons_enabled: bool = Field(
        default=True,
        description="Write a lesson to the ledger when the checkpoint halts"
    )

    # Halt thresholds
    error_match_threshold: float = Field(
        default=0.70,
        ge=0.0,
        le=1.0,
        description="Minimum error signature match score that produces a halt reason"
    )
    iteration_threshold: int = Field(
        default=2,
        ge=0,
        description="Iteration count above which repeated approaches are flagged"
    )
    iteration_hard_limit: int = Field(
        default=4,
        ge=1,
        description="Iteration count that always halts, regardless of severity"
    )
    precedent_threshold: float = Field(
        default=0.75,
        ge=0.0,
        le=1.0,
        description="Minimum precedent similarity that produces a halt reason"
    )

    # Tier / packaging
    credentials_path: str = Field(
        default=str(Path.home() / ".esmc" / "credentials.json"),
        description="Local credentials file used for tier resolution"
    )
    package_signature_key: Optional[str] = Field(
        default=None,
        description="Override passphrase for package signature verification"
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        """Accept lower-case level names"""
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @property
    def lessons_file(self) -> Path:
        """Resolved lessons ledger path"""
        return Path(self.lessons_path).expanduser()

    @property
    def credentials_file(self) -> Path:
        """Resolved credentials path"""
        return Path(self.credentials_path).expanduser()

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE) if ENV_FILE.exists() else None,
        env_file_encoding="utf-8",
        env_prefix="ESMC_",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
