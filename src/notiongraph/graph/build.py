"""Build the page/tag graph from a Notion database snapshot.

Pages become nodes, every distinct tag becomes a shared tag node, and edges
come from tag membership, relation properties and inline page mentions.
References to pages outside the snapshot are dropped, never raised.
"""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

from ..notion.pages import Mention, Page
from .models import (
    NODE_TYPE_PAGE,
    NODE_TYPE_TAG,
    TAG_GROUP,
    GraphData,
    GraphEdge,
    GraphNode,
    page_group,
    tag_node_id,
)


logger = logging.getLogger(__name__)


def unique_tags(pages: Iterable[Page]) -> list[str]:
    # First-seen order keeps repeated builds identical.
    seen: dict[str, None] = {}
    for page in pages:
        for tag in page.tags:
            seen.setdefault(tag, None)
    return list(seen)


def unique_pages(pages: Iterable[Page]) -> list[Page]:
    # A page id seen twice (e.g. the database changed mid-pagination) keeps its first record.
    seen: dict[str, Page] = {}
    for page in pages:
        seen.setdefault(page.id, page)
    return list(seen.values())


def build_graph(pages: Sequence[Page], mentions: Iterable[Mention] = ()) -> GraphData:
    """Return the full graph for `pages` (order sets display groups)."""
    nodes: list[GraphNode] = []
    links: list[GraphEdge] = []

    kept = unique_pages(pages)
    if len(kept) != len(pages):
        logger.debug("Skipped %d duplicate pages", len(pages) - len(kept))
    pages = kept

    for index, page in enumerate(pages):
        nodes.append(
            GraphNode(
                id=page.id,
                name=page.title,
                type=NODE_TYPE_PAGE,
                group=page_group(index),
                url=page.url,
            )
        )

    tags = unique_tags(pages)
    for tag in tags:
        nodes.append(GraphNode(id=tag_node_id(tag), name=tag, type=NODE_TYPE_TAG, group=TAG_GROUP))
    logger.debug("Created %d page nodes and %d tag nodes", len(pages), len(tags))

    node_ids = {n.id for n in nodes}

    tag_links = 0
    for page in pages:
        for tag in page.tags:
            links.append(GraphEdge(source=page.id, target=tag_node_id(tag)))
            tag_links += 1

    relation_links = 0
    for page in pages:
        for target in page.relations:
            if target not in node_ids:
                continue
            links.append(GraphEdge(source=page.id, target=target))
            relation_links += 1

    mention_links = 0
    skipped = 0
    for m in mentions:
        if m.source_id in node_ids and m.target_id in node_ids:
            links.append(GraphEdge(source=m.source_id, target=m.target_id))
            mention_links += 1
        else:
            skipped += 1

    logger.debug(
        "Created %d tag links, %d relation links, %d mention links (%d mentions outside the database)",
        tag_links,
        relation_links,
        mention_links,
        skipped,
    )
    return GraphData.of(nodes, links)


def graph_stats(graph: GraphData) -> dict[str, int]:
    pages = sum(1 for n in graph.nodes if n.type == NODE_TYPE_PAGE)
    tags = sum(1 for n in graph.nodes if n.type == NODE_TYPE_TAG)
    return {
        "nodes": len(graph.nodes),
        "page_nodes": pages,
        "tag_nodes": tags,
        "links": len(graph.links),
    }
