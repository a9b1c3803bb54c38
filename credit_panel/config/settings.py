"""
Environment settings.

Values come from the process environment, optionally seeded from a .env file.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    """Deployment settings read from the environment."""
    APP_NAME: str = "Credit Panel"
    SUPABASE_URL: Optional[str] = None
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None
    DB_PATH: str = "credit_panel.db"
    CONFIG_PATH: Optional[str] = None


def get_settings() -> Settings:
    """Read settings from the current environment."""
    return Settings(
        APP_NAME=os.getenv("APP_NAME", "Credit Panel"),
        SUPABASE_URL=os.getenv("SUPABASE_URL") or None,
        SUPABASE_SERVICE_ROLE_KEY=os.getenv("SUPABASE_SERVICE_ROLE_KEY") or None,
        DB_PATH=os.getenv("CREDIT_PANEL_DB_PATH", "credit_panel.db"),
        CONFIG_PATH=os.getenv("CREDIT_PANEL_CONFIG") or None,
    )
