"""
Tests for the link graph builder.
"""

from site_integrity.corpus.graph import build_link_graph
from site_integrity.engines.base import PageData


def _page(path, *links):
    return PageData(path=path, location=path.strip("/") + "/index.html", outbound_links=frozenset(links))


class TestLinkGraph:

    def test_outbound_and_inbound(self):
        graph = build_link_graph([
            _page("/", "/a", "/b"),
            _page("/a/", "/b", "/missing"),
            _page("/b/"),
        ])
        assert graph.nodes == {"/", "/a", "/b"}
        assert graph.outbound("/") == frozenset({"/a", "/b"})
        assert graph.inbound("/b") == 2
        assert graph.inbound("/missing") == 1
        assert graph.inbound("/") == 0

    def test_targets_without_pages_are_kept(self):
        graph = build_link_graph([_page("/", "/nowhere")])
        assert ("/", "/nowhere") in list(graph.edges())
        assert "/nowhere" not in graph.nodes

    def test_edges_sorted(self):
        graph = build_link_graph([_page("/b/", "/z", "/a"), _page("/", "/b")])
        assert list(graph.edges()) == [("/", "/b"), ("/b", "/a"), ("/b", "/z")]
        assert graph.edge_count == 3

    def test_self_link_is_an_edge(self):
        graph = build_link_graph([_page("/a/", "/a")])
        assert graph.inbound("/a") == 1

    def test_unknown_path_has_no_outbound(self):
        graph = build_link_graph([])
        assert graph.outbound("/") == frozenset()
        assert graph.edge_count == 0
