"""Centralised settings for the Re:Archive crawler.

Every tunable of the crawler, the browser and the archive lives on the
:class:`Settings` singleton.  Each field reads an environment variable;
a `.env` file next to the package is loaded first if present.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (two levels up from this file)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Workspace / storage
    # ------------------------------------------------------------------
    workspace_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("ARCHIVER_WORKSPACE", Path.home() / ".archiver_data")
        )
    )

    @property
    def db_path(self) -> Path:
        """Absolute path to the SQLite archive database."""
        return self.workspace_dir / "archive.db"

    @property
    def schema_path(self) -> Path:
        """Absolute path to the schema SQL file bundled with the package."""
        return Path(__file__).resolve().parent / "db" / "schema.sql"

    # ------------------------------------------------------------------
    # Archive content domain
    # ------------------------------------------------------------------
    content_root: str = field(
        default_factory=lambda: os.environ.get(
            "ARCHIVER_CONTENT_ROOT", "http://archive.localhost/"
        )
    )

    # ------------------------------------------------------------------
    # Crawler
    # ------------------------------------------------------------------
    ppm_limit: float = field(
        default_factory=lambda: float(os.environ.get("PPM_LIMIT", "60"))
    )
    rate_limit_burst: float = field(
        default_factory=lambda: float(os.environ.get("RATE_LIMIT_BURST", "10"))
    )
    status_interval: float = field(
        default_factory=lambda: float(os.environ.get("STATUS_INTERVAL", "1.0"))
    )
    link_xpath: str = field(
        default_factory=lambda: os.environ.get("LINK_XPATH", "//a")
    )

    # ------------------------------------------------------------------
    # Browser
    # ------------------------------------------------------------------
    headless: bool = field(
        default_factory=lambda: _env_flag("BROWSER_HEADLESS", "true")
    )
    navigation_timeout: float = field(
        default_factory=lambda: float(os.environ.get("NAVIGATION_TIMEOUT", "30.0"))
    )

    def ensure_workspace(self) -> None:
        """Create the workspace directory if it does not exist."""
        self.workspace_dir.mkdir(parents=True, exist_ok=True)


# Module-level singleton, import this everywhere:
#   from archiver.config import settings
settings = Settings()
