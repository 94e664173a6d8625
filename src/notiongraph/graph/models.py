from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterable


NODE_TYPE_PAGE = "page"
NODE_TYPE_TAG = "tag"

# Page ids are Notion UUIDs and never start with this marker.
TAG_PREFIX = "tag-"
TAG_GROUP = 0


def tag_node_id(name: str) -> str:
    return f"{TAG_PREFIX}{name}"


def page_group(index: int) -> int:
    # Spread pages over 10 color buckets; 0 is reserved for tags.
    return index % 10 + 1


@dataclass(frozen=True)
class GraphNode:
    id: str
    name: str
    type: str | None = None
    group: int = 1
    url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "type": self.type, "group": self.group, "url": self.url}

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "GraphNode":
        return cls(
            id=str(d["id"]),
            name=str(d.get("name") or ""),
            type=(str(d["type"]) if d.get("type") is not None else None),
            group=int(d.get("group") or 0),
            url=(str(d["url"]) if d.get("url") else None),
        )


@dataclass(frozen=True)
class GraphEdge:
    source: str
    target: str
    value: int = 1
    # Defaults to "<source>-<target>". Not unique; links are never looked up by id.
    id: str = ""

    def __post_init__(self) -> None:
        if not self.id:
            object.__setattr__(self, "id", f"{self.source}-{self.target}")

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "source": self.source, "target": self.target, "value": self.value}

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "GraphEdge":
        return cls(
            source=str(d["source"]),
            target=str(d["target"]),
            value=int(d.get("value") or 1),
            id=str(d.get("id") or ""),
        )


@dataclass(frozen=True)
class GraphData:
    """Immutable node/link snapshot, shaped for the d3 renderer."""

    nodes: tuple[GraphNode, ...] = ()
    links: tuple[GraphEdge, ...] = ()

    @classmethod
    def of(cls, nodes: Iterable[GraphNode], links: Iterable[GraphEdge]) -> "GraphData":
        return cls(nodes=tuple(nodes), links=tuple(links))

    def node_ids(self) -> set[str]:
        return {n.id for n in self.nodes}

    def is_empty(self) -> bool:
        return not self.nodes

    def to_dict(self) -> dict[str, Any]:
        # Field names are what the renderer expects; do not rename.
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "links": [l.to_dict() for l in self.links],
        }

    def to_json(self, *, indent: int | None = None) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=indent)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "GraphData":
        return cls.of(
            (GraphNode.from_dict(n) for n in (d.get("nodes") or []) if isinstance(n, dict)),
            (GraphEdge.from_dict(l) for l in (d.get("links") or []) if isinstance(l, dict)),
        )
