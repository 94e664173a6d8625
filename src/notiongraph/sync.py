from __future__ import annotations

import logging
import sqlite3
import time
from dataclasses import dataclass, field
from typing import Any

from .cache import sqlite_cache
from .cache.sqlite_cache import CachedGraph
from .errors import CacheError, NotionAPIError, NotionDecodeError, SyncError
from .graph.build import build_graph, graph_stats
from .graph.models import GraphData
from .notion.client import NotionClient, ProgressCallback, normalize_database_id


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncResult:
    graph: GraphData
    database_id: str
    synced_at: float
    stats: dict[str, Any] = field(default_factory=dict)
    cached: bool = False


def sync_graph(
    *,
    client: NotionClient,
    conn: sqlite3.Connection | None,
    database_id: str,
    on_progress: ProgressCallback | None = None,
) -> SyncResult:
    """Fetch the database, build the full graph and replace the cache.

    Fetch failures surface as SyncError and nothing is built. A cache write
    failure is logged; the freshly built graph is still returned.
    """
    # Cache metadata keys on the canonical id, whatever form the user typed.
    database_id = normalize_database_id(database_id)
    try:
        pages = client.fetch_pages(database_id)
    except (NotionAPIError, NotionDecodeError) as e:
        raise SyncError(str(e)) from e

    mentions = client.fetch_mentions(pages, on_progress=on_progress)
    graph = build_graph(pages, mentions)
    synced_at = time.time()

    stats: dict[str, Any] = {
        "pages": len(pages),
        "mentions": len(mentions),
        **graph_stats(graph),
    }

    cached = False
    if conn is not None:
        try:
            sqlite_cache.save_graph(conn, graph, database_id=database_id, now=synced_at)
            cached = True
        except CacheError as e:
            logger.warning("%s", e)

    return SyncResult(graph=graph, database_id=database_id, synced_at=synced_at, stats=stats, cached=cached)


def load_cached_graph(conn: sqlite3.Connection) -> CachedGraph | None:
    """Return the cached graph, or None when there is nothing usable."""
    try:
        cached = sqlite_cache.load_graph(conn)
    except CacheError as e:
        logger.warning("%s; treating as no cache", e)
        return None
    if cached.last_sync is None and cached.graph.is_empty():
        return None
    return cached


class GraphState:
    """Current graph shown by a UI; replaced wholesale, never patched."""

    def __init__(self) -> None:
        self.graph = GraphData()
        self.last_sync: float | None = None
        self.database_id: str | None = None
        self.error: str | None = None

    def replace(self, graph: GraphData, *, last_sync: float | None, database_id: str | None = None) -> None:
        self.graph = graph
        self.last_sync = last_sync
        self.database_id = database_id
        self.error = None

    def apply_sync(self, result: SyncResult) -> None:
        self.replace(result.graph, last_sync=result.synced_at, database_id=result.database_id)

    def apply_cache(self, cached: CachedGraph) -> None:
        self.replace(cached.graph, last_sync=cached.last_sync, database_id=cached.database_id)

    def fail(self, message: str) -> None:
        # Keep the last good graph on screen.
        self.error = message
