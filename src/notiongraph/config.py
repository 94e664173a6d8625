from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from .errors import ConfigError


load_dotenv()


@dataclass(frozen=True)
class Settings:
    # Notion integration secret and the database to graph.
    api_key: str = os.getenv("NOTIONGRAPH_API_KEY", "")
    database_id: str = os.getenv("NOTIONGRAPH_DATABASE_ID", "")

    # Default cache path used by the web UI and CLI defaults.
    cache_path: str = os.getenv("NOTIONGRAPH_CACHE_PATH", "./data/graph.db")

    # Notion API
    base_url: str = os.getenv("NOTIONGRAPH_BASE_URL", "https://api.notion.com/v1")
    notion_version: str = os.getenv("NOTIONGRAPH_NOTION_VERSION", "2022-06-28")
    timeout_s: float = float(os.getenv("NOTIONGRAPH_TIMEOUT", "30"))

    # Local graph view
    local_depth: int = int(os.getenv("NOTIONGRAPH_LOCAL_DEPTH", "2"))

    def require_credentials(self, *, api_key: str | None = None, database_id: str | None = None) -> tuple[str, str]:
        """Return trimmed (api_key, database_id), preferring explicit overrides."""
        key = (api_key if api_key is not None else self.api_key).strip()
        db = (database_id if database_id is not None else self.database_id).strip()
        missing = []
        if not key:
            missing.append("NOTIONGRAPH_API_KEY")
        if not db:
            missing.append("NOTIONGRAPH_DATABASE_ID")
        if missing:
            raise ConfigError(
                "Please configure your Notion API key and database ID "
                f"(set {' and '.join(missing)} or pass them as options)."
            )
        return key, db
