"""
Tests for the Path/URL mapper.
"""

import pytest

from site_integrity.core.config import PathFormRule
from site_integrity.core.paths import DIRECTORY, EITHER, FLAT, PathMapper, URLNormalizer


# ─────────────────────────────────────────────
# URL Normalizer Tests
# ─────────────────────────────────────────────

class TestURLNormalizer:

    @pytest.mark.parametrize("raw, expected", [
        ("/", "/"),
        ("", "/"),
        ("/index.html", "/"),
        ("/names/", "/names"),
        ("/names", "/names"),
        ("/name/liam/", "/name/liam"),
        ("/name/liam/index.html", "/name/liam"),
        ("/name/liam.html", "/name/liam"),
        ("name/liam", "/name/liam"),
        ("/names//girl/", "/names/girl"),
        ("/names?page=2#top", "/names"),
        ("/name/zo%C3%AB/", "/name/zoë"),
        ("/name/zo%C3%AB.html", "/name/zoë"),
        ("/a/b/../c/", "/a/c"),
        ("/a/./b", "/a/b"),
        ("/../../etc/passwd", "/etc/passwd"),
        ("..", "/"),
    ])
    def test_normalize_path(self, raw, expected):
        assert URLNormalizer.normalize_path(raw) == expected

    def test_trailing_slash_variants_compare_equal(self):
        assert URLNormalizer.paths_equal("/a/", "/a")
        assert URLNormalizer.paths_equal("/a/index.html", "/a.html")
        assert not URLNormalizer.paths_equal("/a", "/b")

    def test_same_domain_check(self):
        assert URLNormalizer.is_same_domain("https://example.com/page", "example.com")
        assert URLNormalizer.is_same_domain("https://www.example.com/page", "example.com")
        assert not URLNormalizer.is_same_domain("https://other.com/page", "example.com")

    def test_href_root_relative(self):
        assert URLNormalizer.href_to_path("/name/liam/", "example.com") == "/name/liam"

    def test_href_absolute_same_host(self):
        assert URLNormalizer.href_to_path("https://example.com/names/", "example.com") == "/names"

    def test_href_protocol_relative(self):
        assert URLNormalizer.href_to_path("//example.com/names", "example.com") == "/names"

    @pytest.mark.parametrize("href", [
        "#section",
        "mailto:hello@example.com",
        "tel:+15555550100",
        "javascript:void(0)",
        "https://other.com/names",
        "/styles.css",
        "/data/names.json",
        "https://example.com/logo.png",
        "",
    ])
    def test_href_ignored(self, href):
        assert URLNormalizer.href_to_path(href, "example.com") is None

    def test_url_to_path(self):
        assert URLNormalizer.url_to_path("https://example.com/name/liam/") == "/name/liam"
        assert URLNormalizer.url_to_path("https://example.com") == "/"
        assert URLNormalizer.url_to_path("not a url") is None


# ─────────────────────────────────────────────
# Path Mapper Tests
# ─────────────────────────────────────────────

class TestPathMapper:

    @pytest.mark.parametrize("rel, expected", [
        ("index.html", "/"),
        ("names/index.html", "/names/"),
        ("name/liam/index.html", "/name/liam/"),
        ("legal/privacy.html", "/legal/privacy"),
    ])
    def test_path_for_file(self, rel, expected):
        assert PathMapper.path_for_file(rel) == expected

    def test_round_trip_directory_form(self, tmp_path):
        mapper = PathMapper(tmp_path)
        rel = "name/liam/index.html"
        assert mapper.file_for_path(mapper.path_for_file(rel)) == rel

    def test_root_maps_to_index(self, tmp_path):
        assert PathMapper(tmp_path).candidates_for_path("/") == [(DIRECTORY, "index.html")]

    def test_directory_tried_before_flat(self, tmp_path):
        candidates = PathMapper(tmp_path).candidates_for_path("/name/liam/")
        assert candidates == [(DIRECTORY, "name/liam/index.html"), (FLAT, "name/liam.html")]

    def test_resolve_falls_back_to_flat(self, tmp_path):
        (tmp_path / "legal").mkdir()
        (tmp_path / "legal" / "privacy.html").write_text("<html></html>")
        resolution = PathMapper(tmp_path).resolve("/legal/privacy/")
        assert resolution.exists
        assert resolution.form == FLAT
        assert resolution.location == "legal/privacy.html"

    def test_resolve_missing(self, tmp_path):
        resolution = PathMapper(tmp_path).resolve("/nowhere")
        assert not resolution.exists
        assert resolution.location is None

    def test_dual_output_is_ambiguous(self, tmp_path):
        (tmp_path / "name" / "liam").mkdir(parents=True)
        (tmp_path / "name" / "liam" / "index.html").write_text("<html></html>")
        (tmp_path / "name" / "liam.html").write_text("<html></html>")
        resolution = PathMapper(tmp_path).resolve("/name/liam")
        assert resolution.ambiguous
        assert resolution.form == DIRECTORY

    def test_form_rule_pins_family(self, tmp_path):
        (tmp_path / "name").mkdir()
        (tmp_path / "name" / "liam.html").write_text("<html></html>")
        mapper = PathMapper(tmp_path, [PathFormRule(pattern=r"^/name/", form="directory")])
        assert mapper.form_for("/name/liam") == DIRECTORY
        assert mapper.form_for("/legal/terms") == EITHER
        assert not mapper.resolve("/name/liam").exists

    def test_first_matching_rule_wins(self, tmp_path):
        mapper = PathMapper(tmp_path, [
            PathFormRule(pattern=r"^/legal/", form="flat"),
            PathFormRule(pattern=r"^/", form="directory"),
        ])
        assert mapper.form_for("/legal/terms") == FLAT
        assert mapper.candidates_for_path("/legal/terms") == [(FLAT, "legal/terms.html")]

    def test_html_link_follows_family_form(self, tmp_path):
        (tmp_path / "name" / "liam").mkdir(parents=True)
        (tmp_path / "name" / "liam" / "index.html").write_text("<html></html>")
        mapper = PathMapper(tmp_path, [PathFormRule(pattern=r"^/name/", form="directory")])
        resolution = mapper.resolve("/name/liam.html")
        assert resolution.exists
        assert resolution.location == "name/liam/index.html"

    def test_encoded_path_resolves_to_decoded_file(self, tmp_path):
        (tmp_path / "name" / "zoë").mkdir(parents=True)
        (tmp_path / "name" / "zoë" / "index.html").write_text("<html></html>", encoding="utf-8")
        resolution = PathMapper(tmp_path).resolve("/name/zo%C3%AB/")
        assert resolution.exists
        assert resolution.location == "name/zoë/index.html"

    def test_parent_segments_stay_inside_out_dir(self, tmp_path):
        out = tmp_path / "out"
        out.mkdir()
        (tmp_path / "secret.html").write_text("<html></html>")
        resolution = PathMapper(out).resolve("/../secret")
        assert resolution.path == "/secret"
        assert not resolution.exists
