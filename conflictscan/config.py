"""
ConflictScan Configuration

Central settings loaded from environment variables.
"""

import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    """Immutable application settings."""

    # --- Versioning ---
    ENGINE_VERSION: str = "1.0.0"
    API_VERSION: str = "1"

    # --- Pattern dictionary ---
    # Empty means the bundled conflictscan/data/entities.json
    PATTERNS_PATH: str = os.getenv("CONFLICTSCAN_PATTERNS_PATH", "")

    # --- Classification ---
    CLASSIFY_WORKERS: int = int(os.getenv("CONFLICTSCAN_CLASSIFY_WORKERS", "1"))

    # --- Server ---
    HOST: str = os.getenv("CONFLICTSCAN_HOST", "0.0.0.0")
    PORT: int = int(os.getenv("CONFLICTSCAN_PORT", "8000"))
    MAX_RECORDS: int = int(os.getenv("CONFLICTSCAN_MAX_RECORDS", "10000"))

    # --- CORS ---
    CORS_ORIGINS: str = os.getenv("CONFLICTSCAN_CORS_ORIGINS", "*")


settings = Settings()
