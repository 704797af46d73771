"""Tests for path expression parsing and resolution."""

import pytest

from modlet_patcher.document_model import DocumentModel
from modlet_patcher.exceptions import PathSyntaxError
from modlet_patcher.path_resolver import (
    PathSegment,
    parse_path,
    resolve,
    resolve_live,
    split_attribute_target,
)


def _names(document: DocumentModel, node_ids):
    return [document.node(node_id).get("name") for node_id in node_ids]


class TestParsePath:
    """Tests for parse_path."""

    def test_simple_path(self):
        expression = parse_path("/items/item")

        assert expression.segments == (PathSegment("items"), PathSegment("item"))

    def test_predicate_and_index(self):
        expression = parse_path("/items/item[@name='gunPistol']/property[1]")

        assert expression.segments[1] == PathSegment("item", ("name", "gunPistol"))
        assert expression.segments[2] == PathSegment("property", None, 1)

    def test_predicate_followed_by_index(self):
        segment = parse_path('/a/b[@k="v"][2]').segments[1]

        assert segment.attribute == ("k", "v")
        assert segment.index == 2

    def test_predicate_value_is_opaque(self):
        """Reserved characters inside quotes are part of the value."""
        segment = parse_path("/a/b[@k='x/y]z[@q']").segments[1]

        assert segment.attribute == ("k", "x/y]z[@q")

    def test_whitespace_inside_predicate(self):
        segment = parse_path("/a/b[ @k = 'v' ]").segments[1]

        assert segment.attribute == ("k", "v")

    def test_wildcard(self):
        assert parse_path("/items/*").segments[1].tag == "*"

    def test_str_round_trips(self):
        text = "/items/item[@name='a'][0]"

        assert str(parse_path(text)) == text

    @pytest.mark.parametrize("text", [
        "",
        "items/item",
        "/items//item",
        "/items/@name",
        "/items/item[@name]",
        "/items/item[@name=unquoted]",
        "/items/item[@name='unterminated]",
        "/items/item[0][1]",
        "/items/item[0][@name='a']",
        "/items/item[last()]",
        "/items/",
    ])
    def test_rejects_unsupported_syntax(self, text: str):
        with pytest.raises(PathSyntaxError):
            parse_path(text)


class TestSplitAttributeTarget:
    """Tests for split_attribute_target."""

    def test_trailing_attribute(self):
        assert split_attribute_target("/items/item[@name='a']/@value") == ("/items/item[@name='a']", "value")

    def test_no_attribute(self):
        assert split_attribute_target("/items/item") == ("/items/item", None)

    def test_attribute_inside_predicate_is_not_split(self):
        assert split_attribute_target("/items/item[@name='a/@b']") == ("/items/item[@name='a/@b']", None)


class TestResolve:
    """Tests for resolve."""

    def test_first_segment_matches_root(self, items_document: DocumentModel):
        assert resolve(items_document, "/items") == [items_document.root_id]
        assert resolve(items_document, "/blocks") == []

    def test_multiple_matches_in_document_order(self, items_document: DocumentModel):
        matches = resolve(items_document, "/items/item")

        assert _names(items_document, matches) == ["gunPistol", "meleeClub", "meleeKnife"]

    def test_attribute_predicate(self, items_document: DocumentModel):
        matches = resolve(items_document, "/items/item[@name='meleeClub']")

        assert _names(items_document, matches) == ["meleeClub"]

    def test_predicate_is_exact(self, items_document: DocumentModel):
        assert resolve(items_document, "/items/item[@name='meleeclub']") == []
        assert resolve(items_document, "/items/item[@name='melee']") == []

    def test_positional_index_is_zero_based(self, items_document: DocumentModel):
        matches = resolve(items_document, "/items/item[1]")

        assert _names(items_document, matches) == ["meleeClub"]

    def test_index_out_of_range(self, items_document: DocumentModel):
        assert resolve(items_document, "/items/item[3]") == []

    def test_index_applies_across_all_candidates(self, items_document: DocumentModel):
        """The index picks among the whole step's candidates, not per parent."""
        matches = resolve(items_document, "/items/item/property[2]")

        assert len(matches) == 1
        assert items_document.node(items_document.parent_of(matches[0])).get("name") == "meleeClub"

    def test_deep_matches_in_document_order(self, items_document: DocumentModel):
        matches = resolve(items_document, "/items/item/property[@name='Tags']")

        assert [items_document.node(m).get("value") for m in matches] == ["gun,pistol", "melee", "melee,blade"]

    def test_wildcard(self, items_document: DocumentModel):
        assert len(resolve(items_document, "/items/*/property")) == 4

    def test_removed_nodes_still_resolve(self, items_document: DocumentModel):
        """Tombstones are returned by resolve and filtered by resolve_live."""
        pistol = resolve(items_document, "/items/item[0]")[0]
        items_document.remove_node(pistol)

        assert resolve(items_document, "/items/item[0]") == [pistol]
        assert resolve_live(items_document, "/items/item[0]") == []
        assert _names(items_document, resolve_live(items_document, "/items/item")) == ["meleeClub", "meleeKnife"]
