from typing import Any

import sqlite3


def create_app(*, default_cache_path: str | None = None, client_factory=None):
    # Lazy import so core CLI works without web deps.
    from fastapi import FastAPI, Request
    from fastapi.responses import HTMLResponse, JSONResponse
    from fastapi.templating import Jinja2Templates

    from .. import __version__
    from ..cache import sqlite_cache
    from ..config import Settings
    from ..errors import CacheError, ConfigError, SyncError
    from ..graph.build import graph_stats
    from ..graph.local import local_graph
    from ..graph.models import GraphData
    from ..notion.client import NotionClient
    from ..sync import GraphState, load_cached_graph, sync_graph
    from .render import GRAPH_TEMPLATE, TEMPLATES_DIR, format_last_sync, graph_context

    settings = Settings()
    cache_default = default_cache_path or settings.cache_path

    templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

    app = FastAPI(title="Notion Graph", version=__version__)
    state = GraphState()

    def _make_client(api_key: str) -> NotionClient:
        if client_factory is not None:
            return client_factory(api_key)
        return NotionClient(
            api_key,
            base_url=settings.base_url,
            notion_version=settings.notion_version,
            timeout_s=settings.timeout_s,
        )

    def _open_cache() -> sqlite3.Connection:
        conn = sqlite_cache.connect(cache_default)
        try:
            sqlite_cache.init_cache(conn)
        except sqlite3.Error as e:
            conn.close()
            raise CacheError(f"Cannot initialise cache at {cache_default}: {e}") from e
        return conn

    def _current():
        # First request after startup shows the last synced graph, if any.
        if state.last_sync is None and state.graph.is_empty():
            try:
                conn = _open_cache()
            except CacheError as e:
                state.fail(str(e))
                return state.graph
            try:
                cached = load_cached_graph(conn)
            finally:
                conn.close()
            if cached is not None:
                state.apply_cache(cached)
        return state.graph

    def _view(center: str | None, depth: int | None):
        graph = _current()
        d = int(depth if depth is not None else settings.local_depth)
        if center:
            graph = local_graph(graph, center, max_depth=d)
        return graph, d

    @app.get("/", response_class=HTMLResponse)
    def home(request: Request, center: str | None = None, depth: int | None = None):
        graph, d = _view(center, depth)
        return templates.TemplateResponse(
            request,
            GRAPH_TEMPLATE,
            graph_context(
                graph,
                center=center,
                depth=d,
                local_links=True,
                last_sync=state.last_sync,
                error=state.error,
            ),
        )

    @app.get("/api/graph")
    def graph(center: str | None = None, depth: int | None = None):
        g, d = _view(center, depth)
        if center and g.is_empty():
            return JSONResponse({"ok": False, "error": f"node not found: {center}"}, status_code=404)
        return {"ok": True, "center": center, "depth": d, **g.to_dict()}

    @app.get("/api/status")
    def status():
        g = _current()
        return {
            "ok": True,
            "database_id": state.database_id,
            "last_sync": state.last_sync,
            "last_sync_text": format_last_sync(state.last_sync),
            "error": state.error,
            "stats": graph_stats(g),
        }

    @app.post("/api/sync")
    def sync(payload: dict[str, Any] | None = None):
        payload = payload or {}
        for field in ("api_key", "database_id"):
            if payload.get(field) is not None and not isinstance(payload[field], str):
                return JSONResponse({"ok": False, "error": f"{field} must be a string"}, status_code=400)
        try:
            api_key, database_id = settings.require_credentials(
                api_key=payload.get("api_key"),
                database_id=payload.get("database_id"),
            )
        except ConfigError as e:
            return JSONResponse({"ok": False, "error": str(e)}, status_code=400)

        try:
            conn = _open_cache()
        except CacheError:
            conn = None
        try:
            res = sync_graph(client=_make_client(api_key), conn=conn, database_id=database_id)
        except SyncError as e:
            state.fail(str(e))
            return JSONResponse({"ok": False, "error": str(e)}, status_code=502)
        finally:
            if conn is not None:
                conn.close()

        state.apply_sync(res)
        return {"ok": True, "cached": res.cached, "stats": res.stats}

    @app.post("/api/cache/clear")
    def clear_cache():
        try:
            conn = _open_cache()
            try:
                sqlite_cache.clear_cache(conn)
            finally:
                conn.close()
        except CacheError as e:
            return JSONResponse({"ok": False, "error": str(e)}, status_code=500)
        state.replace(GraphData(), last_sync=None)
        return {"ok": True}

    return app
