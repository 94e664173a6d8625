from __future__ import annotations

import time
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from ..graph.models import GraphData


TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
GRAPH_TEMPLATE = "graph.html"


def format_last_sync(ts: float | None) -> str | None:
    if ts is None:
        return None
    return time.strftime("%Y-%m-%d %H:%M", time.localtime(ts))


def graph_context(
    graph: GraphData,
    *,
    title: str = "Notion Knowledge Graph",
    center: str | None = None,
    depth: int = 2,
    local_links: bool = False,
    last_sync: float | None = None,
    error: str | None = None,
) -> dict:
    return {
        "title": title,
        "graph": graph.to_dict(),
        "center": center,
        "depth": int(depth),
        "local_links": bool(local_links),
        "last_sync": format_last_sync(last_sync),
        "error": error,
    }


def render_html(graph: GraphData, **kwargs) -> str:
    """Standalone HTML page drawing `graph` with d3."""
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=select_autoescape(["html"]),
    )
    return env.get_template(GRAPH_TEMPLATE).render(**graph_context(graph, **kwargs))
