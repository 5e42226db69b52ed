"""Tests for use-declaration parsing and rendering."""

from modsplit.scanning import UseLeaf, UseStatement, parse_use, reexport_line, render_use


class TestParseUse:
    """parse_use flattens use trees into leaves."""

    def test_nested_group_with_self_alias_and_glob(self):
        statement = parse_use("use crate::net::{self, tcp::Stream as S, udp::*};")
        assert statement.visibility == ""
        assert statement.leaves == (
            UseLeaf(("crate", "net"), alias="net"),
            UseLeaf(("crate", "net", "tcp", "Stream"), alias="S"),
            UseLeaf(("crate", "net", "udp"), glob=True),
        )

    def test_restricted_visibility(self):
        statement = parse_use("pub(crate) use a::b;")
        assert statement.visibility == "pub(crate)"
        assert statement.leaves == (UseLeaf(("a", "b")),)

    def test_multiline_group(self):
        statement = parse_use("use std::{\n    fmt,\n    io,\n};")
        assert [leaf.path for leaf in statement.leaves] == [("std", "fmt"), ("std", "io")]

    def test_leading_double_colon(self):
        statement = parse_use("use ::serde::Serialize;")
        assert statement.leaves[0].path == ("serde", "Serialize")

    def test_not_a_use_declaration(self):
        assert parse_use("fn main() {}") is None

    def test_malformed_group(self):
        assert parse_use("use a::{b, c;") is None


class TestUseLeaf:
    def test_local_name(self):
        assert UseLeaf(("a", "B")).local_name == "B"
        assert UseLeaf(("a", "B"), alias="C").local_name == "C"
        assert UseLeaf(("a", "Trait"), alias="_").local_name is None
        assert UseLeaf(("a",), glob=True).local_name is None

    def test_render(self):
        assert UseLeaf(("a", "b"), glob=True).render() == "a::b::*"
        assert UseLeaf(("a", "b"), alias="c").render() == "a::b as c"
        assert UseLeaf(("a", "b"), alias="b").render() == "a::b"


class TestRenderUse:
    def test_groups_by_parent_in_first_seen_order(self):
        statement = UseStatement(
            "pub",
            (
                UseLeaf(("a", "b", "X")),
                UseLeaf(("c",), glob=True),
                UseLeaf(("a", "b", "Y"), alias="Z"),
            ),
        )
        assert render_use(statement) == ["pub use a::b::{X, Y as Z};", "pub use c::*;"]

    def test_single_leaf(self):
        assert render_use(UseStatement("", (UseLeaf(("crate", "io", "Stream")),))) == [
            "use crate::io::Stream;"
        ]

    def test_reexport_line(self):
        assert reexport_line("pub", "part1", ["a"]) == "pub use part1::a;"
        assert reexport_line("", "part1", ["a", "b"]) == "use part1::{a, b};"
