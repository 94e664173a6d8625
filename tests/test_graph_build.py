import json
import unittest
from collections import Counter

from notiongraph.cache import sqlite_cache
from notiongraph.graph.build import build_graph, graph_stats, unique_tags
from notiongraph.graph.models import GraphData, GraphEdge, tag_node_id
from notiongraph.notion.pages import Mention, Page


def _pairs(graph):
    return Counter((l.source, l.target) for l in graph.links)


class TestBuildGraph(unittest.TestCase):
    def test_alpha_beta_example(self):
        pages = [
            Page(id="A", title="Alpha", tags=("x",), relations=("B",)),
            Page(id="B", title="Beta", tags=("x",)),
        ]
        g = build_graph(pages, [])

        self.assertEqual([n.id for n in g.nodes], ["A", "B", "tag-x"])
        self.assertEqual(
            _pairs(g),
            Counter({("A", "tag-x"): 1, ("B", "tag-x"): 1, ("A", "B"): 1}),
        )
        # Tag links first, then relations.
        self.assertEqual([(l.source, l.target) for l in g.links][-1], ("A", "B"))

    def test_pages_without_tags_or_relations_have_no_links(self):
        pages = [Page(id=f"p{i}", title=f"Page {i}") for i in range(5)]
        g = build_graph(pages)
        self.assertEqual(len(g.nodes), 5)
        self.assertEqual(g.links, ())

    def test_groups_follow_input_order(self):
        pages = [Page(id=f"p{i}") for i in range(12)]
        g = build_graph(pages)
        self.assertEqual([n.group for n in g.nodes], [1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 1, 2])

    def test_one_tag_node_per_distinct_tag(self):
        pages = [
            Page(id="a", tags=("x", "y")),
            Page(id="b", tags=("y",)),
            Page(id="c", tags=("x", "z")),
        ]
        g = build_graph(pages)
        tags = [n for n in g.nodes if n.type == "tag"]
        self.assertEqual(sorted(n.id for n in tags), ["tag-x", "tag-y", "tag-z"])
        for n in tags:
            self.assertEqual(n.group, 0)
            self.assertIsNone(n.url)
        self.assertEqual(graph_stats(g)["tag_nodes"], 3)
        self.assertEqual(sum(1 for l in g.links if l.target.startswith("tag-")), 5)

    def test_tag_ids_do_not_collide_with_pages(self):
        pages = [Page(id="x", tags=("x",))]
        g = build_graph(pages)
        self.assertEqual([n.id for n in g.nodes], ["x", tag_node_id("x")])

    def test_dangling_relations_and_mentions_are_dropped(self):
        pages = [
            Page(id="A", relations=("B", "outside")),
            Page(id="B"),
        ]
        mentions = [
            Mention("A", "B"),
            Mention("A", "ghost"),
            Mention("ghost", "B"),
        ]
        g = build_graph(pages, mentions)
        ids = g.node_ids()
        for l in g.links:
            self.assertIn(l.source, ids)
            self.assertIn(l.target, ids)
        self.assertEqual(_pairs(g), Counter({("A", "B"): 2}))

    def test_duplicate_mentions_are_kept(self):
        pages = [Page(id="A"), Page(id="B")]
        g = build_graph(pages, [Mention("A", "B"), Mention("A", "B")])
        self.assertEqual(_pairs(g)[("A", "B")], 2)

    def test_mention_can_target_tag_node(self):
        pages = [Page(id="A", tags=("t",))]
        g = build_graph(pages, [Mention("A", "tag-t")])
        self.assertEqual(_pairs(g)[("A", "tag-t")], 2)

    def test_page_url_is_carried(self):
        g = build_graph([Page(id="A", title="Alpha", url="https://www.notion.so/A")])
        self.assertEqual(g.nodes[0].url, "https://www.notion.so/A")
        self.assertEqual(g.nodes[0].type, "page")

    def test_build_is_deterministic(self):
        pages = [
            Page(id="A", tags=("b", "a"), relations=("B",)),
            Page(id="B", tags=("c", "a")),
        ]
        mentions = [Mention("B", "A")]
        self.assertEqual(build_graph(pages, mentions), build_graph(pages, mentions))

    def test_duplicate_page_ids_keep_first_record(self):
        pages = [
            Page(id="A", title="Alpha", tags=("x",)),
            Page(id="B", title="Beta"),
            Page(id="A", title="Alpha again", tags=("y",), relations=("B",)),
            Page(id="C", title="Gamma"),
        ]
        g = build_graph(pages)

        self.assertEqual([n.id for n in g.nodes], ["A", "B", "C", "tag-x"])
        self.assertEqual(len(g.node_ids()), len(g.nodes))
        self.assertEqual(g.nodes[0].name, "Alpha")
        self.assertEqual([n.group for n in g.nodes if n.type == "page"], [1, 2, 3])
        self.assertEqual(_pairs(g), Counter({("A", "tag-x"): 1}))

    def test_duplicate_page_ids_can_be_cached(self):
        g = build_graph([Page(id="A"), Page(id="A")])
        conn = sqlite_cache.connect(":memory:")
        try:
            sqlite_cache.save_graph(conn, g, database_id="db1")
            self.assertEqual(sqlite_cache.load_graph(conn).graph, g)
        finally:
            conn.close()

    def test_unique_tags_first_seen_order(self):
        pages = [Page(id="a", tags=("b", "a")), Page(id="c", tags=("a", "c"))]
        self.assertEqual(unique_tags(pages), ["b", "a", "c"])

    def test_renderer_document_shape(self):
        g = build_graph([Page(id="A", title="Alpha", tags=("x",), url="https://www.notion.so/A")])
        doc = json.loads(g.to_json())
        self.assertEqual(
            doc,
            {
                "nodes": [
                    {"id": "A", "name": "Alpha", "type": "page", "group": 1, "url": "https://www.notion.so/A"},
                    {"id": "tag-x", "name": "x", "type": "tag", "group": 0, "url": None},
                ],
                "links": [{"id": "A-tag-x", "source": "A", "target": "tag-x", "value": 1}],
            },
        )
        self.assertEqual(GraphData.from_dict(doc), g)

    def test_edge_default_id(self):
        self.assertEqual(GraphEdge(source="A", target="B").id, "A-B")
        self.assertEqual(GraphEdge(source="A", target="B", id="custom").id, "custom")


if __name__ == "__main__":
    unittest.main()
