"""Tests for type search, type lookup and member listing."""

import pytest

from analysis.models import (
    Accessibility,
    AnalysisResult,
    MemberKind,
    MethodKind,
    ParameterNode,
    TypeKind,
    TypeRefNode,
)
from analysis.query import (
    base_chain,
    find_type,
    interfaces,
    list_members,
    list_types,
    wildcard_to_regex,
)
from errors import InvalidInputError, TypeNotFoundError
from builders import add_member, make_assembly, make_type, newtonsoft_assembly


def _analysis(assembly):
    return AnalysisResult.build(
        package_id="Pkg",
        package_version="1.0.0",
        platform_tag="netstandard2.0",
        artifact_name=f"{assembly.name}.dll",
        artifact_path=f"/packages/pkg/1.0.0/lib/netstandard2.0/{assembly.name}.dll",
        assembly=assembly,
    )


@pytest.fixture
def newtonsoft():
    return _analysis(newtonsoft_assembly())


class TestWildcard:
    """Test wildcard to regex conversion."""

    @pytest.mark.parametrize("name", ["System.IO.Stream", "System.IO.MemoryStream", "Streamer", "x.STREAMING"])
    def test_bare_word_equals_surrounding_stars(self, name):
        """Test 'Stream' and '*Stream*' accept the same names, case-insensitively."""
        assert bool(wildcard_to_regex("Stream").search(name)) == bool(wildcard_to_regex("*Stream*").search(name))
        assert wildcard_to_regex("stream").search(name)

    def test_star_matches_everything(self):
        """Test '*' and empty patterns match any name."""
        for pattern in ("*", "", None):
            assert wildcard_to_regex(pattern).search("Anything.At.All")

    def test_regex_metacharacters_are_literal(self):
        """Test dots and brackets are not regex syntax."""
        regex = wildcard_to_regex("List[T]")
        assert regex.search("List[T]")
        assert not regex.search("ListT")

    def test_prefix_pattern(self):
        """Test 'Newtonsoft.*' matches namespaced names."""
        regex = wildcard_to_regex("Newtonsoft.*")
        assert regex.search("Newtonsoft.Json.JsonConvert")
        assert not regex.search("NewtonsoftXJson")


class TestListTypes:
    """Test type search filtering, ordering and truncation."""

    def test_interface_limit_reports_total(self):
        """Test 5 of 12 public interfaces are returned in name order with the full total."""
        names = [f"IService{chr(ord('L') - i)}" for i in range(12)]
        types = [make_type(n, "Contracts", kind=TypeKind.INTERFACE) for n in names]
        types.append(make_type("Hidden", "Contracts", kind=TypeKind.INTERFACE, accessibility=Accessibility.INTERNAL))
        types.append(make_type("Impl", "Contracts"))
        listing = list_types(_analysis(make_assembly(types)), "*", "interface", True, 5)

        assert listing.total == 12
        assert len(listing.types) == 5
        assert [t.name for t in listing.types] == sorted(names)[:5]
        assert listing.truncated

    def test_class_filter_excludes_static_classes(self, newtonsoft):
        """Test static classes are not classes for filtering."""
        names = [t.name for t in list_types(newtonsoft, "*", "class").types]
        assert "JsonConvert" not in names
        assert names == ["JToken", "JsonReader", "JsonSerializer", "JsonTextReader"]

    def test_public_only(self, newtonsoft):
        """Test internal types appear only when requested."""
        assert "JsonTextReaderState" not in [t.name for t in list_types(newtonsoft).types]
        assert "JsonTextReaderState" in [t.name for t in list_types(newtonsoft, public_only=False).types]

    def test_pattern_matches_full_name(self, newtonsoft):
        """Test the pattern is applied to namespace-qualified names."""
        listing = list_types(newtonsoft, "Newtonsoft.Json.Linq.*")
        assert [t.name for t in listing.types] == ["JToken"]
        assert list_types(newtonsoft, "reader").total == 2

    def test_zero_limit(self, newtonsoft):
        """Test a zero limit still reports the total."""
        listing = list_types(newtonsoft, "*", "*", True, 0)
        assert listing.types == []
        assert listing.total == 6

    def test_unknown_kind_and_negative_limit(self, newtonsoft):
        """Test invalid filters are rejected."""
        with pytest.raises(InvalidInputError):
            list_types(newtonsoft, "*", "record")
        with pytest.raises(InvalidInputError):
            list_types(newtonsoft, "*", "*", True, -1)


class TestFindType:
    """Test type lookup order."""

    def test_full_and_simple_names(self, newtonsoft):
        """Test full name and simple name resolve to the same node."""
        assert find_type(newtonsoft, "Newtonsoft.Json.JsonConvert") is find_type(newtonsoft, "JsonConvert")

    def test_nested_and_generic_names(self):
        """Test display names with generic parameters and nesting."""
        outer = make_type("Cache", "Lib", generic_parameters=("TKey", "TValue"))
        outer.metadata_name = "Lib.Cache`2"
        inner = make_type("Entry", "", containing_type=outer)
        inner.metadata_name = "Lib.Cache`2+Entry"
        analysis = _analysis(make_assembly([outer, inner]))

        assert find_type(analysis, "Lib.Cache<TKey, TValue>") is outer
        assert find_type(analysis, "Lib.Cache`2") is outer
        assert find_type(analysis, "Lib.Cache.Entry") is inner
        assert find_type(analysis, "Cache<TKey, TValue>.Entry") is inner
        assert inner.display_name == "Lib.Cache<TKey, TValue>.Entry"

    def test_missing_type(self, newtonsoft):
        """Test an unknown type name."""
        with pytest.raises(TypeNotFoundError):
            find_type(newtonsoft, "Nope")


class TestListMembers:
    """Test member grouping, ordering and inheritance."""

    def test_inherited_and_override_are_both_listed(self, newtonsoft):
        """Test an overriding member and its base declaration are distinct entries."""
        text_reader = find_type(newtonsoft, "JsonTextReader")
        listing = list_members(text_reader, include_inherited=True)
        reads = [m for m in listing.methods if m.name == "Read"]
        assert len(reads) == 2
        assert {m.declaring_type.name for m in reads} == {"JsonTextReader", "JsonReader"}
        assert "Close" in [m.name for m in listing.methods]

    def test_declared_only(self, newtonsoft):
        """Test base members are excluded without include_inherited."""
        listing = list_members(find_type(newtonsoft, "JsonTextReader"))
        assert [m.name for m in listing.methods] == ["Read"]
        assert len(listing.constructors) == 1

    def test_protected_members_need_public_only_off(self, newtonsoft):
        """Test non-public constructors are filtered by default."""
        reader = find_type(newtonsoft, "JsonReader")
        assert list_members(reader).constructors == []
        assert len(list_members(reader, public_only=False).constructors) == 1

    def test_ordering_per_kind(self):
        """Test constructors by arity, methods in declaration order and properties by name."""
        node = make_type("Widget")
        add_member(node, "Zeta")
        add_member(node, "Alpha")
        add_member(node, ".ctor", kind=MemberKind.CONSTRUCTOR,
                   parameters=(ParameterNode("a", "int"), ParameterNode("b", "int")))
        add_member(node, ".ctor", kind=MemberKind.CONSTRUCTOR)
        add_member(node, "get_Size", method_kind=MethodKind.PROPERTY_ACCESSOR)
        add_member(node, "op_Equality", method_kind=MethodKind.OPERATOR, is_static=True)
        add_member(node, "Size", kind=MemberKind.PROPERTY, type_name="int", has_getter=True)
        add_member(node, "Color", kind=MemberKind.PROPERTY, type_name="string", has_getter=True)

        listing = list_members(node)
        assert [len(c.parameters) for c in listing.constructors] == [0, 2]
        assert [m.name for m in listing.methods] == ["Zeta", "Alpha"]
        assert [p.name for p in listing.properties] == ["Color", "Size"]
        assert listing.total == 6

    def test_kind_and_name_filters(self, newtonsoft):
        """Test restricting to one kind and a name wildcard."""
        serializer = find_type(newtonsoft, "JsonSerializer")
        assert [m.name for m in list_members(serializer, kind="event").events] == ["Error"]
        assert list_members(serializer, kind="event").properties == []
        assert list_members(serializer, name_pattern="Format*").total == 1
        with pytest.raises(InvalidInputError):
            list_members(serializer, kind="indexer")


class TestHierarchy:
    """Test base chain and interface helpers."""

    def test_base_chain_stops_outside_assembly(self, newtonsoft):
        """Test the chain ends at the first external type."""
        chain = base_chain(find_type(newtonsoft, "JsonTextReader"))
        assert [c.display_name for c in chain] == ["Newtonsoft.Json.JsonReader", "System.Object"]
        assert isinstance(chain[-1], TypeRefNode)

    def test_inherited_interfaces(self, newtonsoft):
        """Test interfaces of base types are included on request."""
        text_reader = find_type(newtonsoft, "JsonTextReader")
        assert interfaces(text_reader) == []
        assert [i.full_name for i in interfaces(text_reader, include_inherited=True)] == ["System.IDisposable"]
