import json
import unittest

import httpx

from notiongraph.errors import NotionAPIError, NotionDecodeError
from notiongraph.notion.client import NotionClient, normalize_database_id
from notiongraph.notion.pages import Mention, Page


DB_HEX = "0123456789abcdef0123456789abcdef"
DB_UUID = "01234567-89ab-cdef-0123-456789abcdef"


def _page(pid, title):
    return {"id": pid, "properties": {"Name": {"type": "title", "title": [{"plain_text": title}]}}}


def _mention_block(target):
    return {
        "type": "paragraph",
        "paragraph": {"rich_text": [{"type": "mention", "mention": {"type": "page", "page": {"id": target}}}]},
    }


class FakeNotion:
    """Routes requests to canned Notion responses and records them."""

    def __init__(self, *, pages=None, blocks=None, query_status=200):
        self.pages = pages or []
        self.blocks = blocks or {}
        self.query_status = query_status
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.endswith("/query"):
            if self.query_status != 200:
                return httpx.Response(self.query_status, text='{"message": "unauthorized"}')
            body = json.loads(request.content or b"{}")
            start = int(body.get("start_cursor") or 0)
            size = int(body.get("page_size") or 100)
            chunk = self.pages[start : start + size]
            more = start + size < len(self.pages)
            return httpx.Response(
                200,
                json={"results": chunk, "has_more": more, "next_cursor": str(start + size) if more else None},
            )
        if path.startswith("/v1/blocks/"):
            page_id = path.split("/")[3]
            blocks = self.blocks.get(page_id)
            if blocks is None:
                return httpx.Response(404, text="not found")
            return httpx.Response(200, json={"results": blocks, "has_more": False, "next_cursor": None})
        return httpx.Response(404, text="unknown route")

    def client(self):
        return NotionClient("secret", transport=httpx.MockTransport(self))


class TestNormalizeDatabaseId(unittest.TestCase):
    def test_formats(self):
        self.assertEqual(normalize_database_id(DB_HEX), DB_UUID)
        self.assertEqual(normalize_database_id(f"  {DB_UUID}\n"), DB_UUID)
        self.assertEqual(normalize_database_id(f"https://www.notion.so/team/{DB_HEX}?v=abc"), DB_UUID)
        self.assertEqual(normalize_database_id(f"https://www.notion.so/team/My-Notes-{DB_HEX}"), DB_UUID)
        self.assertEqual(normalize_database_id("short-id"), "short-id")


class TestNotionClient(unittest.TestCase):
    def test_fetch_pages_sends_auth_headers(self):
        fake = FakeNotion(pages=[_page("a", "Alpha")])
        pages = fake.client().fetch_pages(DB_HEX)

        self.assertEqual(pages, [Page(id="a", title="Alpha")])
        req = fake.requests[0]
        self.assertEqual(req.method, "POST")
        self.assertEqual(req.url.path, f"/v1/databases/{DB_UUID}/query")
        self.assertEqual(req.headers["Authorization"], "Bearer secret")
        self.assertEqual(req.headers["Notion-Version"], "2022-06-28")

    def test_query_follows_pagination(self):
        fake = FakeNotion(pages=[_page(f"p{i}", f"P{i}") for i in range(5)])
        rows = fake.client().query_database(DB_HEX, page_size=2)
        self.assertEqual([r["id"] for r in rows], ["p0", "p1", "p2", "p3", "p4"])
        self.assertEqual(len(fake.requests), 3)

    def test_non_200_raises_api_error(self):
        fake = FakeNotion(query_status=401)
        with self.assertRaises(NotionAPIError) as ctx:
            fake.client().fetch_pages(DB_HEX)
        self.assertEqual(ctx.exception.status_code, 401)
        self.assertIn("401", str(ctx.exception))

    def test_transport_failure_raises_api_error(self):
        def boom(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = NotionClient("secret", transport=httpx.MockTransport(boom))
        with self.assertRaises(NotionAPIError) as ctx:
            client.fetch_pages(DB_HEX)
        self.assertEqual(ctx.exception.status_code, 0)

    def test_bad_body_raises_decode_error(self):
        client = NotionClient("secret", transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"nope": 1})))
        with self.assertRaises(NotionDecodeError):
            client.fetch_pages(DB_HEX)

        client = NotionClient("secret", transport=httpx.MockTransport(lambda r: httpx.Response(200, text="<html>")))
        with self.assertRaises(NotionDecodeError):
            client.fetch_pages(DB_HEX)

    def test_page_without_id_raises_decode_error(self):
        fake = FakeNotion(pages=[{"properties": {}}])
        with self.assertRaises(NotionDecodeError):
            fake.client().fetch_pages(DB_HEX)

    def test_fetch_mentions_skips_failed_pages(self):
        fake = FakeNotion(blocks={"a": [_mention_block("b"), _mention_block("c")], "c": [_mention_block("a")]})
        pages = [Page(id="a"), Page(id="b"), Page(id="c")]
        progress = []

        mentions = fake.client().fetch_mentions(pages, on_progress=lambda done, total: progress.append((done, total)))

        self.assertEqual(mentions, [Mention("a", "b"), Mention("a", "c"), Mention("c", "a")])
        self.assertEqual(progress, [(1, 3), (2, 3), (3, 3)])
        self.assertEqual([r.method for r in fake.requests], ["GET", "GET", "GET"])


if __name__ == "__main__":
    unittest.main()
