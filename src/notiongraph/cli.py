from __future__ import annotations

import json
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn
from rich.table import Table

from .cache import sqlite_cache
from .config import Settings
from .errors import CacheError, ConfigError, NotionAPIError, NotionDecodeError, SyncError
from .graph.build import graph_stats
from .graph.local import local_graph
from .graph.models import GraphData
from .notion.client import NotionClient, normalize_database_id
from .sync import load_cached_graph, sync_graph
from .web.render import format_last_sync, render_html


app = typer.Typer(add_completion=False, help="Notion Graph: turn a Notion database into a knowledge graph.")
console = Console()


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _client(settings: Settings, api_key: str) -> NotionClient:
    return NotionClient(
        api_key,
        base_url=settings.base_url,
        notion_version=settings.notion_version,
        timeout_s=settings.timeout_s,
    )


def _load_graph(cache: Path) -> tuple[GraphData, float | None]:
    try:
        conn = sqlite_cache.connect(cache)
    except CacheError as e:
        console.print(str(e), style="red")
        raise typer.Exit(code=2)
    try:
        cached = load_cached_graph(conn)
    finally:
        conn.close()

    if cached is None:
        console.print(f"No cached graph in {cache}.", style="yellow")
        console.print("Run: `notiongraph sync`", style="yellow")
        raise typer.Exit(code=2)
    return cached.graph, cached.last_sync


def _print_stats(graph: GraphData, *, title: str, last_sync: float | None = None) -> None:
    table = Table(title=title)
    table.add_column("Metric")
    table.add_column("Value")
    for k, v in graph_stats(graph).items():
        table.add_row(k, str(v))
    if last_sync is not None:
        table.add_row("last_sync", format_last_sync(last_sync) or "")
    console.print(table)


@app.command()
def sync(
    cache: Path | None = typer.Option(None, "--cache", help="SQLite cache path"),
    api_key: str | None = typer.Option(None, "--api-key", help="Notion integration secret"),
    database_id: str | None = typer.Option(None, "--database-id", help="Notion database id or URL"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Do not write the cache"),
):
    """Fetch the database, build the graph and replace the cache."""
    settings = Settings()
    try:
        key, db = settings.require_credentials(api_key=api_key, database_id=database_id)
    except ConfigError as e:
        console.print(str(e), style="red")
        raise typer.Exit(code=2)

    cache_path = cache or Path(settings.cache_path)
    conn = None
    if not no_cache:
        try:
            conn = sqlite_cache.connect(cache_path)
        except CacheError as e:
            console.print(f"{e}; continuing without cache.", style="yellow")

    try:
        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("Scanning pages for mentions...", total=None)

            def on_progress(done: int, total: int) -> None:
                progress.update(task, completed=done, total=total)

            res = sync_graph(client=_client(settings, key), conn=conn, database_id=db, on_progress=on_progress)
    except SyncError as e:
        console.print(str(e), style="red")
        console.print("Check your API key, database id and that the integration has access, then retry.", style="yellow")
        raise typer.Exit(code=1)
    finally:
        if conn is not None:
            conn.close()

    console.print(f"Pages: {res.stats['pages']}")
    console.print(f"Mentions: {res.stats['mentions']}")
    console.print(f"Nodes: {res.stats['nodes']} ({res.stats['tag_nodes']} tags)")
    console.print(f"Links: {res.stats['links']}")
    if res.cached:
        console.print(f"Saved to {cache_path}", style="green")
    elif not no_cache:
        console.print("Graph was not cached.", style="yellow")


@app.command()
def show(
    cache: Path | None = typer.Option(None, "--cache", help="SQLite cache path"),
):
    """Show stats for the cached graph."""
    settings = Settings()
    graph, last = _load_graph(cache or Path(settings.cache_path))
    _print_stats(graph, title="Cached Graph", last_sync=last)


@app.command()
def local(
    center: str = typer.Argument(..., help="Node id (page id or tag-<name>)"),
    depth: int | None = typer.Option(None, "--depth", help="Max hops from the center"),
    cache: Path | None = typer.Option(None, "--cache", help="SQLite cache path"),
    out: Path | None = typer.Option(None, "--out", help="Write the local graph JSON here"),
):
    """Show the local graph around a node."""
    settings = Settings()
    graph, _ = _load_graph(cache or Path(settings.cache_path))
    d = int(depth if depth is not None else settings.local_depth)

    sub = local_graph(graph, center, max_depth=d)
    if sub.is_empty():
        console.print(f"Node not found: {center}", style="yellow")
        raise typer.Exit(code=2)

    if out is not None:
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(sub.to_json(indent=2), encoding="utf-8")
        console.print(f"Wrote {len(sub.nodes)} nodes to {out}")
        return

    table = Table(title=f"Local graph of {center} (depth {d})")
    table.add_column("id")
    table.add_column("name")
    table.add_column("type")
    table.add_column("group", justify="right")
    for n in sub.nodes:
        table.add_row(n.id, n.name, n.type or "", str(n.group))
    console.print(table)
    console.print(f"links: {len(sub.links)}", markup=False)


@app.command()
def export(
    out: Path = typer.Option(..., "--out", help="Output JSON path"),
    cache: Path | None = typer.Option(None, "--cache", help="SQLite cache path"),
):
    """Export the cached graph as {nodes, links} JSON."""
    settings = Settings()
    graph, _ = _load_graph(cache or Path(settings.cache_path))
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(graph.to_json(indent=2), encoding="utf-8")
    console.print(f"Wrote {len(graph.nodes)} nodes and {len(graph.links)} links to {out}")


@app.command()
def render(
    out: Path = typer.Option(..., "--out", help="Output HTML path"),
    center: str | None = typer.Option(None, "--center", help="Render only the local graph of this node"),
    depth: int | None = typer.Option(None, "--depth", help="Max hops for --center"),
    cache: Path | None = typer.Option(None, "--cache", help="SQLite cache path"),
    source: Path | None = typer.Option(None, "--json", help="Draw a graph written by `export` instead of the cache"),
):
    """Write a standalone HTML page that draws the cached graph."""
    settings = Settings()
    if source is not None:
        try:
            doc = json.loads(source.read_text(encoding="utf-8"))
            if not isinstance(doc, dict):
                raise ValueError("expected a {nodes, links} object")
            graph, last = GraphData.from_dict(doc), None
        except (OSError, ValueError, KeyError, TypeError) as e:
            console.print(f"Cannot read graph JSON {source}: {e}", style="red")
            raise typer.Exit(code=2)
    else:
        graph, last = _load_graph(cache or Path(settings.cache_path))
    d = int(depth if depth is not None else settings.local_depth)
    if center:
        graph = local_graph(graph, center, max_depth=d)

    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(render_html(graph, center=center, depth=d, last_sync=last), encoding="utf-8")
    console.print(f"Wrote {out}")


@app.command("clear-cache")
def clear_cache(
    cache: Path | None = typer.Option(None, "--cache", help="SQLite cache path"),
):
    """Delete the cached graph and sync metadata."""
    settings = Settings()
    cache_path = cache or Path(settings.cache_path)
    try:
        conn = sqlite_cache.connect(cache_path)
        try:
            sqlite_cache.clear_cache(conn)
        finally:
            conn.close()
    except CacheError as e:
        console.print(str(e), style="red")
        raise typer.Exit(code=1)
    console.print(f"Cleared {cache_path}")


@app.command()
def serve(
    cache: Path | None = typer.Option(None, "--cache", help="Default cache path for the server"),
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8000, "--port"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on code changes (dev only)"),
):
    """Run the graph viewer (FastAPI)."""
    try:
        import uvicorn
    except ImportError:
        console.print("Missing web dependencies. Install: `pip install -e '.[web]'`", style="red")
        raise typer.Exit(code=2)

    from .web.server import create_app

    settings = Settings()
    app_ = create_app(default_cache_path=str(cache or settings.cache_path))
    uvicorn.run(app_, host=host, port=int(port), reload=bool(reload))


@app.command()
def doctor(
    api_key: str | None = typer.Option(None, "--api-key", help="Notion integration secret"),
    database_id: str | None = typer.Option(None, "--database-id", help="Notion database id or URL"),
    cache: Path | None = typer.Option(None, "--cache", help="Cache path to check"),
):
    """Check credentials, API access and the cache, and print actionable fixes."""
    settings = Settings()
    ok = True

    console.print("Notion:")
    try:
        key, db = settings.require_credentials(api_key=api_key, database_id=database_id)
    except ConfigError as e:
        console.print(f"- {e}", style="red")
        console.print("  Fix: add them to .env or pass --api-key/--database-id", style="yellow")
        key, db = "", ""
        ok = False

    if key and db:
        normalized = normalize_database_id(db)
        console.print(f"- Database id: {normalized}", style="green")
        try:
            rows = _client(settings, key).query_database(db, page_size=1)
            console.print(f"- API reachable at {settings.base_url} ({len(rows)} page(s) visible)", style="green")
        except NotionAPIError as e:
            console.print(f"- {e}", style="red")
            if e.status_code in (401, 403):
                console.print("  Fix: check the secret and share the database with the integration.", style="yellow")
            elif e.status_code == 404:
                console.print("  Fix: check the database id; the integration must be invited to it.", style="yellow")
            else:
                console.print("  Fix: check your network connection, then retry.", style="yellow")
            ok = False
        except NotionDecodeError as e:
            console.print(f"- {e}", style="red")
            ok = False

    cache_path = cache or Path(settings.cache_path)
    console.print("\nCache:")
    if not cache_path.exists():
        console.print(f"- No cache at {cache_path}", style="yellow")
        console.print("  Fix: run `notiongraph sync`", style="yellow")
    else:
        try:
            conn = sqlite_cache.connect(cache_path)
            try:
                n = sqlite_cache.counts(conn)
                last = sqlite_cache.last_sync(conn)
                same_db = bool(db) and sqlite_cache.has_cached_data(conn, normalize_database_id(db))
            finally:
                conn.close()
            console.print(f"- Nodes: {n['nodes']}, links: {n['links']}", style="green" if n["nodes"] else "yellow")
            console.print(f"- Last sync: {format_last_sync(last) or 'never'}")
            if db and last is not None and not same_db:
                console.print("- Cache was synced from a different database", style="yellow")
                console.print("  Fix: run `notiongraph sync`", style="yellow")
        except CacheError as e:
            console.print(f"- {e}", style="red")
            console.print("  Fix: run `notiongraph clear-cache` then `notiongraph sync`", style="yellow")
            ok = False

    if not ok:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
