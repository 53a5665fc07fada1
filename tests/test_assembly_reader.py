"""Tests for the dnfile-backed assembly reader."""

from types import SimpleNamespace

import pytest

pytest.importorskip("dnfile")

from analysis.assembly_reader import DnfileAnalyzer, _MetadataReader  # noqa: E402
from analysis.models import Accessibility, MemberKind, MethodKind, TypeKind  # noqa: E402
from analysis.query import list_members  # noqa: E402


def ref(table, index):
    return SimpleNamespace(table_name=table, row_index=index)


def refs(table, *indexes):
    return [ref(table, i) for i in indexes]


def table(*rows):
    return SimpleNamespace(rows=list(rows))


def typeref(namespace, name):
    return SimpleNamespace(TypeNamespace=namespace, TypeName=name, ResolutionScope=ref("AssemblyRef", 1))


def typedef(namespace, name, flags, extends=None, fields=(), methods=()):
    return SimpleNamespace(
        TypeNamespace=namespace,
        TypeName=name,
        Flags=flags,
        Extends=extends,
        FieldList=refs("Field", *fields),
        MethodList=refs("MethodDef", *methods),
    )


def method(name, flags, signature):
    return SimpleNamespace(Name=name, Flags=flags, Signature=bytes(signature), ParamList=[])


def field(name, flags, signature):
    return SimpleNamespace(Name=name, Flags=flags, Signature=bytes(signature))


def version_row(name, major, minor, build, revision):
    return SimpleNamespace(
        Name=name, MajorVersion=major, MinorVersion=minor, BuildNumber=build, RevisionNumber=revision
    )


VOID_INSTANCE = (0x20, 0, 0x01)
INT_INSTANCE = (0x20, 0, 0x08)
INT_FIELD = (0x06, 0x08)


def sample_tables(reference_assembly=True):
    """Metadata of a small library.

    TypeDef rows: 1 <Module>, 2 Base, 3 Derived, 4 Helpers, 5 Color,
    6 Point, 7 Callback, 8 IShape, 9 Derived+Inner`1.
    """
    type_refs = table(
        typeref("System", "Object"),
        typeref("System", "Enum"),
        typeref("System", "ValueType"),
        typeref("System", "MulticastDelegate"),
        typeref("System", "IDisposable"),
        typeref("System.Runtime.CompilerServices", "ReferenceAssemblyAttribute"),
        typeref("System", "EventHandler"),
    )
    type_defs = table(
        typedef("", "<Module>", 0),
        typedef("Sample", "Base", 0x81, ref("TypeRef", 1), methods=(1, 2)),
        typedef("Sample", "Derived", 0x01, ref("TypeDef", 2), methods=(3, 4, 5, 6, 7, 9)),
        typedef("Sample", "Helpers", 0x181, ref("TypeRef", 1), fields=(1,)),
        typedef("Sample", "Color", 0x101, ref("TypeRef", 2), fields=(2, 3)),
        typedef("Sample", "Point", 0x101, ref("TypeRef", 3)),
        typedef("Sample", "Callback", 0x101, ref("TypeRef", 4)),
        typedef("Sample", "IShape", 0xA1, None, methods=(8,)),
        typedef("", "Inner`1", 0x02, ref("TypeRef", 1), fields=(4,)),
    )
    methods = table(
        method("Run", 0x5C6, VOID_INSTANCE),  # public abstract virtual newslot
        method(".ctor", 0x1884, VOID_INSTANCE),  # protected
        method("Run", 0xC6, VOID_INSTANCE),  # public virtual, reuses the slot
        method("get_Count", 0x886, INT_INSTANCE),
        method("op_Addition", 0x896, (0x00, 2, 0x12, 3 << 2, 0x12, 3 << 2, 0x12, 3 << 2)),
        method("Dispose", 0x1E6, VOID_INSTANCE),  # public final virtual newslot
        method("add_Changed", 0x886, (0x20, 1, 0x01, 0x12, (7 << 2) | 1)),
        method("Area", 0x5C6, INT_INSTANCE),
        method("Render", 0x1C6, VOID_INSTANCE),  # public virtual newslot
    )
    fields = table(
        field("Max", 0x56, INT_FIELD),  # public const
        field("value__", 0x606, INT_FIELD),
        field("Red", 0x56, (0x06, 0x11, 5 << 2)),
        field("Value", 0x06, (0x06, 0x13, 0)),
    )
    tables = SimpleNamespace(
        Assembly=table(version_row("Sample", 1, 2, 3, 0)),
        AssemblyRef=table(version_row("System.Runtime", 8, 0, 0, 0)),
        TypeRef=type_refs,
        TypeDef=type_defs,
        MethodDef=methods,
        Field=fields,
        Property=table(SimpleNamespace(Name="Count", Type=bytes((0x28, 0, 0x08)))),
        PropertyMap=table(SimpleNamespace(Parent=ref("TypeDef", 3), PropertyList=refs("Property", 1))),
        Event=table(SimpleNamespace(Name="Changed", EventType=ref("TypeRef", 7))),
        EventMap=table(SimpleNamespace(Parent=ref("TypeDef", 3), EventList=refs("Event", 1))),
        MethodSemantics=table(
            SimpleNamespace(Method=ref("MethodDef", 4), Association=ref("Property", 1), Semantics=0x02),
            SimpleNamespace(Method=ref("MethodDef", 7), Association=ref("Event", 1), Semantics=0x08),
        ),
        NestedClass=table(SimpleNamespace(NestedClass=ref("TypeDef", 9), EnclosingClass=ref("TypeDef", 3))),
        GenericParam=table(SimpleNamespace(Owner=ref("TypeDef", 9), Number=0, Name="T")),
        InterfaceImpl=table(SimpleNamespace(Class=ref("TypeDef", 3), Interface=ref("TypeRef", 5))),
        Constant=table(
            SimpleNamespace(Parent=ref("Field", 1), Type=0x08, Value=(42).to_bytes(4, "little")),
            SimpleNamespace(Parent=ref("Field", 3), Type=0x08, Value=(0).to_bytes(4, "little")),
        ),
        MemberRef=table(SimpleNamespace(Class=ref("TypeRef", 6), Name=".ctor")),
        CustomAttribute=table(
            SimpleNamespace(Parent=ref("TypeDef", 2), Type=ref("MemberRef", 1)),
        ),
    )
    if reference_assembly:
        tables.CustomAttribute.rows.append(SimpleNamespace(Parent=ref("Assembly", 1), Type=ref("MemberRef", 1)))
    return tables


def build(tables=None):
    assembly = _MetadataReader(tables or sample_tables()).build("Sample.dll", None)
    return assembly, {t.metadata_name: t for t in assembly.types}


def member(type_node, name, kind=None):
    matches = [m for m in type_node.members if m.name == name and (kind is None or m.kind is kind)]
    assert len(matches) == 1, f"{name}: {matches}"
    return matches[0]


class TestDnfileAnalyzer:
    """Test inputs that are not managed assemblies."""

    def test_not_a_pe_image(self, tmp_path):
        """Test arbitrary bytes are reported as not analyzable."""
        path = tmp_path / "Broken.dll"
        path.write_bytes(b"not an assembly at all")
        assert DnfileAnalyzer().analyze(str(path)) is None

    def test_truncated_dos_header(self, tmp_path):
        """Test a file with only the MZ signature."""
        path = tmp_path / "Stub.dll"
        path.write_bytes(b"MZ" + b"\x00" * 30)
        assert DnfileAnalyzer().analyze(str(path)) is None


class TestMetadataReaderAssembly:
    """Test the assembly-level facts read from the manifest rows."""

    def test_identity_and_references(self):
        assembly, _ = build()
        assert assembly.name == "Sample"
        assert assembly.version == "1.2.3.0"
        assert [(r.name, r.version) for r in assembly.references] == [("System.Runtime", "8.0.0.0")]

    def test_module_type_is_skipped(self):
        _, types = build()
        assert "<Module>" not in types
        assert len(types) == 8

    def test_reference_assembly_attribute(self):
        """Test only an attribute on the assembly itself marks a reference assembly."""
        assembly, _ = build()
        assert assembly.is_reference_assembly is True

        assembly, _ = build(sample_tables(reference_assembly=False))
        assert assembly.is_reference_assembly is False


class TestMetadataReaderTypes:
    """Test type kinds, modifiers and names."""

    @pytest.mark.parametrize(
        "metadata_name, kind",
        [
            ("Sample.Base", TypeKind.CLASS),
            ("Sample.Color", TypeKind.ENUM),
            ("Sample.Point", TypeKind.STRUCT),
            ("Sample.Callback", TypeKind.DELEGATE),
            ("Sample.IShape", TypeKind.INTERFACE),
        ],
    )
    def test_kind(self, metadata_name, kind):
        _, types = build()
        assert types[metadata_name].kind is kind

    def test_static_class_is_abstract_and_sealed(self):
        _, types = build()
        helpers = types["Sample.Helpers"]
        assert helpers.is_static is True
        assert types["Sample.Base"].is_static is False
        assert types["Sample.Base"].is_abstract is True

    def test_sealed_value_types_are_not_reported_sealed(self):
        _, types = build()
        assert types["Sample.Point"].is_sealed is False
        assert types["Sample.Color"].is_sealed is False

    def test_nested_generic_names(self):
        _, types = build()
        inner = types["Sample.Derived+Inner`1"]
        assert inner.name == "Inner"
        assert inner.namespace == ""
        assert inner.generic_parameters == ("T",)
        assert inner.containing_type is types["Sample.Derived"]
        assert inner.full_name == "Sample.Derived.Inner"
        assert inner.display_name == "Sample.Derived.Inner<T>"
        assert inner.doc_id == "T:Sample.Derived.Inner`1"
        assert member(inner, "Value").type_name == "T"

    def test_base_types_and_interfaces(self):
        _, types = build()
        derived = types["Sample.Derived"]
        assert derived.base_type is types["Sample.Base"]
        assert [(i.namespace, i.name) for i in derived.interfaces] == [("System", "IDisposable")]
        assert types["Sample.IShape"].base_type is None


class TestMetadataReaderMembers:
    """Test member kinds and inheritance modifiers."""

    def test_override_is_virtual_without_newslot(self):
        _, types = build()
        derived = types["Sample.Derived"]
        run = member(derived, "Run")
        assert run.is_override is True
        assert run.is_virtual is False

        render = member(derived, "Render")
        assert render.is_virtual is True
        assert render.is_override is False

    def test_final_interface_implementation_is_neither_virtual_nor_override(self):
        _, types = build()
        dispose = member(types["Sample.Derived"], "Dispose")
        assert dispose.is_virtual is False
        assert dispose.is_override is False
        assert dispose.is_sealed is False

    def test_abstract_members(self):
        _, types = build()
        base_run = member(types["Sample.Base"], "Run")
        assert base_run.is_abstract is True
        assert base_run.is_virtual is False
        area = member(types["Sample.IShape"], "Area")
        assert area.is_abstract is True
        assert area.is_override is False

    def test_method_kinds(self):
        _, types = build()
        derived = types["Sample.Derived"]
        assert member(derived, "get_Count").method_kind is MethodKind.PROPERTY_ACCESSOR
        assert member(derived, "add_Changed").method_kind is MethodKind.EVENT_ACCESSOR
        assert member(derived, "op_Addition").method_kind is MethodKind.OPERATOR
        ctor = member(types["Sample.Base"], ".ctor")
        assert ctor.kind is MemberKind.CONSTRUCTOR
        assert ctor.accessibility is Accessibility.PROTECTED

    def test_accessors_and_operators_stay_out_of_methods(self):
        _, types = build()
        listing = list_members(types["Sample.Derived"])
        assert [m.name for m in listing.methods] == ["Run", "Dispose", "Render"]
        assert [m.name for m in listing.properties] == ["Count"]
        assert [m.name for m in listing.events] == ["Changed"]

    def test_property_and_event(self):
        _, types = build()
        derived = types["Sample.Derived"]
        count = member(derived, "Count", MemberKind.PROPERTY)
        assert count.type_name == "int"
        assert count.has_getter is True
        assert count.has_setter is False
        assert count.accessibility is Accessibility.PUBLIC
        changed = member(derived, "Changed", MemberKind.EVENT)
        assert changed.type_name == "System.EventHandler"
        assert changed.accessibility is Accessibility.PUBLIC

    def test_constants_and_enum_fields(self):
        _, types = build()
        maximum = member(types["Sample.Helpers"], "Max")
        assert maximum.is_const is True
        assert maximum.is_static is False
        assert maximum.constant_value == 42
        assert maximum.type_name == "int"

        color = types["Sample.Color"]
        assert [m.name for m in color.members] == ["Red"]
        red = member(color, "Red")
        assert red.type_name == "Color"
        assert red.constant_value == 0

    def test_operator_parameters_fall_back_to_positional_names(self):
        _, types = build()
        op = member(types["Sample.Derived"], "op_Addition")
        assert op.is_static is True
        assert [p.name for p in op.parameters] == ["arg1", "arg2"]
        assert op.doc_id == "M:Sample.Derived.op_Addition(Sample.Derived,Sample.Derived)"
