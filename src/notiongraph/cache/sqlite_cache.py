from __future__ import annotations

import os
import sqlite3
import time
from dataclasses import dataclass
from pathlib import Path

from ..errors import CacheError
from ..graph.models import GraphData, GraphEdge, GraphNode


SCHEMA_VERSION = 1
META_KEY = "main"


@dataclass(frozen=True)
class CachedGraph:
    graph: GraphData
    last_sync: float | None
    database_id: str | None


def connect(cache_path: str | os.PathLike[str]) -> sqlite3.Connection:
    try:
        if str(cache_path) != ":memory:":
            Path(cache_path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(cache_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
    except (OSError, sqlite3.Error) as e:
        raise CacheError(f"Cannot open cache at {cache_path}: {e}") from e
    return conn


def init_cache(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS meta (
          key TEXT PRIMARY KEY,
          value TEXT NOT NULL
        );
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS graph_nodes (
          id TEXT PRIMARY KEY,
          name TEXT NOT NULL,
          type TEXT,
          grp INTEGER NOT NULL,
          url TEXT,
          position INTEGER NOT NULL,
          last_updated REAL NOT NULL
        );
        """
    )
    # Link ids repeat when the same pair is linked twice, so rows are keyed by rowid.
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS graph_links (
          link_rowid INTEGER PRIMARY KEY,
          id TEXT NOT NULL,
          source TEXT NOT NULL,
          target TEXT NOT NULL,
          value INTEGER NOT NULL,
          last_updated REAL NOT NULL
        );
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS sync_metadata (
          key TEXT PRIMARY KEY,
          last_sync REAL,
          database_id TEXT NOT NULL
        );
        """
    )
    conn.execute(
        "INSERT OR REPLACE INTO meta(key, value) VALUES(?, ?)",
        ("schema_version", str(SCHEMA_VERSION)),
    )
    conn.commit()


def _clear(conn: sqlite3.Connection) -> None:
    conn.execute("DELETE FROM graph_links;")
    conn.execute("DELETE FROM graph_nodes;")
    conn.execute("DELETE FROM sync_metadata;")


def clear_cache(conn: sqlite3.Connection) -> None:
    try:
        init_cache(conn)
        with conn:
            _clear(conn)
    except sqlite3.Error as e:
        raise CacheError(f"Failed to clear cache: {e}") from e


def save_graph(conn: sqlite3.Connection, graph: GraphData, *, database_id: str, now: float | None = None) -> None:
    """Replace the cached graph and sync metadata in one transaction."""
    ts = float(now if now is not None else time.time())
    try:
        init_cache(conn)
        with conn:
            _clear(conn)
            conn.executemany(
                """
                INSERT INTO graph_nodes(id, name, type, grp, url, position, last_updated)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                [(n.id, n.name, n.type, int(n.group), n.url, i, ts) for i, n in enumerate(graph.nodes)],
            )
            conn.executemany(
                """
                INSERT INTO graph_links(id, source, target, value, last_updated)
                VALUES (?, ?, ?, ?, ?)
                """,
                [(l.id, l.source, l.target, int(l.value), ts) for l in graph.links],
            )
            conn.execute(
                "INSERT INTO sync_metadata(key, last_sync, database_id) VALUES(?, ?, ?)",
                (META_KEY, ts, database_id),
            )
    except sqlite3.Error as e:
        raise CacheError(f"Failed to save graph to cache: {e}") from e


def load_graph(conn: sqlite3.Connection) -> CachedGraph:
    try:
        init_cache(conn)
        node_rows = conn.execute(
            "SELECT id, name, type, grp, url FROM graph_nodes ORDER BY position"
        ).fetchall()
        link_rows = conn.execute(
            "SELECT id, source, target, value FROM graph_links ORDER BY link_rowid"
        ).fetchall()
        meta = conn.execute(
            "SELECT last_sync, database_id FROM sync_metadata WHERE key = ?",
            (META_KEY,),
        ).fetchone()
    except sqlite3.Error as e:
        raise CacheError(f"Failed to read cache: {e}") from e

    nodes = [
        GraphNode(
            id=str(r["id"]),
            name=str(r["name"]),
            type=(str(r["type"]) if r["type"] is not None else None),
            group=int(r["grp"]),
            url=(str(r["url"]) if r["url"] is not None else None),
        )
        for r in node_rows
    ]
    links = [
        GraphEdge(source=str(r["source"]), target=str(r["target"]), value=int(r["value"]), id=str(r["id"]))
        for r in link_rows
    ]
    return CachedGraph(
        graph=GraphData.of(nodes, links),
        last_sync=(float(meta["last_sync"]) if meta is not None and meta["last_sync"] is not None else None),
        database_id=(str(meta["database_id"]) if meta is not None else None),
    )


def has_cached_data(conn: sqlite3.Connection, database_id: str) -> bool:
    try:
        init_cache(conn)
        row = conn.execute(
            "SELECT 1 FROM sync_metadata WHERE database_id = ?",
            (database_id,),
        ).fetchone()
    except sqlite3.Error as e:
        raise CacheError(f"Failed to check cache: {e}") from e
    return row is not None


def last_sync(conn: sqlite3.Connection) -> float | None:
    try:
        init_cache(conn)
        row = conn.execute("SELECT last_sync FROM sync_metadata WHERE key = ?", (META_KEY,)).fetchone()
    except sqlite3.Error as e:
        raise CacheError(f"Failed to read sync metadata: {e}") from e
    if row is None or row["last_sync"] is None:
        return None
    return float(row["last_sync"])


def counts(conn: sqlite3.Connection) -> dict[str, int]:
    try:
        init_cache(conn)
        nodes = conn.execute("SELECT COUNT(*) AS n FROM graph_nodes").fetchone()["n"]
        links = conn.execute("SELECT COUNT(*) AS n FROM graph_links").fetchone()["n"]
    except sqlite3.Error as e:
        raise CacheError(f"Failed to read cache: {e}") from e
    return {"nodes": int(nodes), "links": int(links)}
