from __future__ import annotations

import logging
import re
from typing import Any, Callable, Sequence
from urllib.parse import urlsplit

import httpx

from ..errors import NotionAPIError, NotionDecodeError
from .pages import Mention, Page, mentions_for_page, parse_page


logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.notion.com/v1"
DEFAULT_NOTION_VERSION = "2022-06-28"

_HEX32_RE = re.compile(r"[0-9a-fA-F]{32}$")

ProgressCallback = Callable[[int, int], None]


def normalize_database_id(raw: str) -> str:
    """Accept a bare id, a dashed UUID, or a copied Notion URL."""
    clean = raw.strip()

    # Keep only the last path segment of a URL, without its query string.
    path = urlsplit(clean).path if "://" in clean else clean.split("?", 1)[0]
    segments = [s for s in path.split("/") if s]
    if segments:
        clean = segments[-1]

    compact = clean.replace("-", "")
    if len(compact) > 32:
        # Notion page URLs look like "My-Database-<32 hex>".
        m = _HEX32_RE.search(compact)
        if m:
            compact = m.group(0)
    if len(compact) == 32:
        return f"{compact[:8]}-{compact[8:12]}-{compact[12:16]}-{compact[16:20]}-{compact[20:]}"
    return clean


class NotionClient:
    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        notion_version: str = DEFAULT_NOTION_VERSION,
        timeout_s: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.api_key = api_key.strip()
        self.base_url = base_url.rstrip("/")
        self.notion_version = notion_version
        self.timeout_s = float(timeout_s)
        self.transport = transport

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Notion-Version": self.notion_version,
            "Content-Type": "application/json",
        }

    def _request(self, method: str, path: str, *, json: dict[str, Any] | None = None, params: dict[str, Any] | None = None) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            with httpx.Client(timeout=self.timeout_s, transport=self.transport) as client:
                r = client.request(method, url, headers=self._headers(), json=json, params=params)
        except httpx.HTTPError as e:
            raise NotionAPIError(0, f"{self.base_url} ({e})") from e

        if r.status_code != 200:
            raise NotionAPIError(r.status_code, r.text or "Unknown error")

        try:
            data = r.json()
        except ValueError as e:
            raise NotionDecodeError(f"Invalid JSON from {url}: {e}") from e
        if not isinstance(data, dict):
            raise NotionDecodeError(f"Unexpected Notion response from {url}: {data!r}")
        return data

    def _paginate(self, method: str, path: str, *, page_size: int) -> list[dict[str, Any]]:
        results: list[dict[str, Any]] = []
        cursor: str | None = None
        while True:
            if method == "POST":
                body: dict[str, Any] = {"page_size": int(page_size)}
                if cursor:
                    body["start_cursor"] = cursor
                data = self._request("POST", path, json=body)
            else:
                params: dict[str, Any] = {"page_size": int(page_size)}
                if cursor:
                    params["start_cursor"] = cursor
                data = self._request("GET", path, params=params)

            batch = data.get("results")
            if not isinstance(batch, list):
                raise NotionDecodeError(f"Notion response for {path} has no results list")
            results.extend(r for r in batch if isinstance(r, dict))

            cursor = data.get("next_cursor")
            if not data.get("has_more") or not isinstance(cursor, str) or not cursor:
                return results

    def query_database(self, database_id: str, *, page_size: int = 100) -> list[dict[str, Any]]:
        db = normalize_database_id(database_id)
        return self._paginate("POST", f"/databases/{db}/query", page_size=page_size)

    def fetch_pages(self, database_id: str) -> list[Page]:
        raw_pages = self.query_database(database_id)
        pages: list[Page] = []
        for raw in raw_pages:
            try:
                pages.append(parse_page(raw))
            except (KeyError, TypeError) as e:
                raise NotionDecodeError(f"Unexpected page record in database query: {e}") from e
        logger.info("Fetched %d pages from database", len(pages))
        return pages

    def list_block_children(self, block_id: str, *, page_size: int = 100) -> list[dict[str, Any]]:
        return self._paginate("GET", f"/blocks/{block_id}/children", page_size=page_size)

    def fetch_mentions(self, pages: Sequence[Page], on_progress: ProgressCallback | None = None) -> list[Mention]:
        """Scan each page's blocks for page mentions.

        A page whose blocks cannot be fetched is logged and contributes no
        mentions; the remaining pages are still scanned.
        """
        out: list[Mention] = []
        total = len(pages)
        for done, page in enumerate(pages, start=1):
            try:
                blocks = self.list_block_children(page.id)
            except (NotionAPIError, NotionDecodeError) as e:
                logger.warning("Failed to fetch blocks for page '%s': %s", page.title, e)
                blocks = []

            found = mentions_for_page(page.id, blocks)
            if found:
                logger.debug("Found %d page mention(s) in '%s'", len(found), page.title)
            out.extend(found)

            if on_progress is not None:
                on_progress(done, total)

        logger.info("Total page mentions found: %d", len(out))
        return out
