"""Parsing of raw Notion page and block records.

Pure functions over the JSON returned by the Notion API. Anything missing or
of the wrong shape is skipped rather than raised, so a single odd property
never breaks a sync.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable


UNTITLED = "Untitled"

# Block kinds whose payload carries a `rich_text` array we scan for mentions.
TEXT_BLOCK_TYPES = (
    "paragraph",
    "heading_1",
    "heading_2",
    "heading_3",
    "bulleted_list_item",
    "numbered_list_item",
)


@dataclass(frozen=True)
class Page:
    id: str
    title: str = UNTITLED
    tags: tuple[str, ...] = ()
    relations: tuple[str, ...] = ()
    url: str | None = None


@dataclass(frozen=True)
class Mention:
    source_id: str
    target_id: str


def _properties(raw: dict[str, Any]) -> list[dict[str, Any]]:
    props = raw.get("properties")
    if not isinstance(props, dict):
        return []
    return [p for p in props.values() if isinstance(p, dict)]


def _dicts(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, dict)]


def page_title(raw: dict[str, Any]) -> str:
    for prop in _properties(raw):
        if prop.get("type") != "title":
            continue
        runs = _dicts(prop.get("title"))
        if runs:
            text = runs[0].get("plain_text")
            if isinstance(text, str) and text:
                return text
    return UNTITLED


def page_tags(raw: dict[str, Any]) -> tuple[str, ...]:
    out: list[str] = []
    for prop in _properties(raw):
        if prop.get("type") != "multi_select":
            continue
        for opt in _dicts(prop.get("multi_select")):
            name = opt.get("name")
            if isinstance(name, str) and name and name not in out:
                out.append(name)
    return tuple(out)


def page_relations(raw: dict[str, Any]) -> tuple[str, ...]:
    out: list[str] = []
    for prop in _properties(raw):
        if prop.get("type") != "relation":
            continue
        for rel in _dicts(prop.get("relation")):
            rid = rel.get("id")
            if isinstance(rid, str) and rid:
                out.append(rid)
    return tuple(out)


def parse_page(raw: dict[str, Any]) -> Page:
    """Build a Page from one `results[]` entry of a database query.

    Raises KeyError/TypeError only when the record has no usable `id`; the
    client turns that into a decode error.
    """
    pid = raw["id"]
    if not isinstance(pid, str) or not pid:
        raise TypeError(f"page id must be a non-empty string, got {pid!r}")
    url = raw.get("url")
    return Page(
        id=pid,
        title=page_title(raw),
        tags=page_tags(raw),
        relations=page_relations(raw),
        url=(url if isinstance(url, str) and url else None),
    )


def rich_text_mentions(runs: Iterable[Any]) -> list[str]:
    out: list[str] = []
    for run in runs:
        if not isinstance(run, dict):
            continue
        mention = run.get("mention")
        if not isinstance(mention, dict) or mention.get("type") != "page":
            continue
        page = mention.get("page")
        if isinstance(page, dict) and isinstance(page.get("id"), str):
            out.append(page["id"])
    return out


def extract_page_mentions(block: dict[str, Any]) -> list[str]:
    """Return the ids of pages mentioned inline in one block, in order."""
    out: list[str] = []
    for kind in TEXT_BLOCK_TYPES:
        payload = block.get(kind)
        if not isinstance(payload, dict):
            continue
        runs = payload.get("rich_text")
        if isinstance(runs, list):
            out.extend(rich_text_mentions(runs))
    return out


def mentions_for_page(page_id: str, blocks: Iterable[dict[str, Any]]) -> list[Mention]:
    return [
        Mention(source_id=page_id, target_id=target)
        for block in blocks
        if isinstance(block, dict)
        for target in extract_page_mentions(block)
    ]
