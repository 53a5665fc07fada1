"""Build a symbol graph from a managed assembly's metadata tables using dnfile."""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional, Sequence, Tuple

import dnfile
import pefile
from dnfile.enums import (
    CorFieldAttrFlags,
    CorMethodAttr,
    CorMethodAttrFlags,
    CorMethodSematicsFlags,
    CorMethodVtableLayout,
    CorParamAttrFlags,
    CorTypeAttr,
    CorTypeAttrFlags,
    CorTypeSemantics,
)

from constants import Constants
from .docs import XmlDocumentation
from .models import (
    Accessibility,
    AssemblyNode,
    AssemblyReference,
    MemberKind,
    MemberNode,
    MethodKind,
    ParameterNode,
    TypeKind,
    TypeNode,
    TypeRefNode,
)
from .signatures import (
    SignatureError,
    SignatureReader,
    TypeSig,
    decode_constant,
    display,
    doc_name,
    generic_definition,
)

logger = logging.getLogger(__name__)

# TypeAttributes
TD_VISIBILITY_MASK = CorTypeAttr.tdVisibilityMask
TD_INTERFACE = CorTypeSemantics.tdInterface
TD_ABSTRACT = CorTypeAttrFlags.tdAbstract
TD_SEALED = CorTypeAttrFlags.tdSealed

# MethodAttributes / FieldAttributes share the access mask
MEMBER_ACCESS_MASK = CorMethodAttr.mdMemberAccessMask
MD_STATIC = CorMethodAttrFlags.mdStatic
MD_FINAL = CorMethodAttrFlags.mdFinal
MD_VIRTUAL = CorMethodAttrFlags.mdVirtual
MD_NEWSLOT = CorMethodVtableLayout.mdNewSlot
MD_ABSTRACT = CorMethodAttrFlags.mdAbstract
MD_SPECIAL_NAME = CorMethodAttrFlags.mdSpecialName

FD_STATIC = CorFieldAttrFlags.fdStatic
FD_INIT_ONLY = CorFieldAttrFlags.fdInitOnly
FD_LITERAL = CorFieldAttrFlags.fdLiteral
FD_RT_SPECIAL_NAME = CorFieldAttrFlags.fdRTSpecialName

PD_IN = CorParamAttrFlags.pdIn
PD_OUT = CorParamAttrFlags.pdOut
PD_HAS_DEFAULT = CorParamAttrFlags.pdHasDefault

# MethodSemanticsAttributes
MS_SETTER = CorMethodSematicsFlags.msSetter
MS_GETTER = CorMethodSematicsFlags.msGetter
MS_ADD_ON = CorMethodSematicsFlags.msAddOn

_TYPE_VISIBILITY = {
    0: Accessibility.INTERNAL,
    1: Accessibility.PUBLIC,
    2: Accessibility.PUBLIC,
    3: Accessibility.PRIVATE,
    4: Accessibility.PROTECTED,
    5: Accessibility.INTERNAL,
    6: Accessibility.PRIVATE_PROTECTED,
    7: Accessibility.PROTECTED_INTERNAL,
}

_MEMBER_ACCESS = {
    0: Accessibility.PRIVATE,
    1: Accessibility.PRIVATE,
    2: Accessibility.PRIVATE_PROTECTED,
    3: Accessibility.INTERNAL,
    4: Accessibility.PROTECTED,
    5: Accessibility.PROTECTED_INTERNAL,
    6: Accessibility.PUBLIC,
}

_ACCESS_RANK = {
    Accessibility.PRIVATE: 0,
    Accessibility.PRIVATE_PROTECTED: 1,
    Accessibility.INTERNAL: 2,
    Accessibility.PROTECTED: 2,
    Accessibility.PROTECTED_INTERNAL: 3,
    Accessibility.PUBLIC: 4,
}

_TYPEDEFORREF = ("TypeDef", "TypeRef", "TypeSpec")


def type_accessibility(flags: int) -> Accessibility:
    return _TYPE_VISIBILITY[flags & TD_VISIBILITY_MASK]


def member_accessibility(flags: int) -> Accessibility:
    return _MEMBER_ACCESS.get(flags & MEMBER_ACCESS_MASK, Accessibility.PRIVATE)


def strip_arity(name: str) -> str:
    """``List`1`` -> ``List``."""
    return name.split("`", 1)[0]


def _text(value: Any) -> str:
    value = getattr(value, "value", value)
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", "replace")
    return str(value)


def _blob(value: Any) -> bytes:
    value = getattr(value, "value", value)
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return b""


def _flags(row: Any, name: str) -> int:
    """Raw integer value of a flags column."""
    raw = getattr(getattr(row, "struct", None), name, None)
    if isinstance(raw, int):
        return raw
    value = getattr(row, name, None)
    if isinstance(value, int):
        return value
    raw = getattr(value, "value", None)
    return raw if isinstance(raw, int) else 0


def _index(ref: Any) -> int:
    return int(getattr(ref, "row_index", 0) or 0)


def _coded(ref: Any) -> Tuple[Optional[str], int]:
    """(table name, row index) of a coded index column."""
    if ref is None:
        return None, 0
    name = getattr(ref, "table_name", None)
    if not name:
        table = getattr(ref, "table", None)
        name = table if isinstance(table, str) else getattr(table, "name", None)
    return name, _index(ref)


def _rows(tables: Any, name: str) -> List[Any]:
    table = getattr(tables, name, None)
    return list(getattr(table, "rows", None) or [])


def _refs(value: Any) -> List[int]:
    return [_index(r) for r in (value or [])]


class DnfileAnalyzer:
    """``AssemblyAnalyzer`` backed by dnfile's ECMA-335 metadata parser."""

    def analyze(self, path: str, doc_path: Optional[str] = None) -> Optional[AssemblyNode]:
        try:
            pe = dnfile.dnPE(path)
        except pefile.PEFormatError as exc:
            logger.info("%s is not a PE image: %s", path, exc)
            return None
        try:
            net = getattr(pe, "net", None)
            tables = getattr(net, "mdtables", None) if net is not None else None
            if tables is None or not _rows(tables, "Assembly"):
                logger.info("%s has no assembly manifest", path)
                return None
            documentation = XmlDocumentation.load(doc_path) if doc_path else None
            return _MetadataReader(tables).build(os.path.basename(path), documentation)
        finally:
            pe.close()


class _MetadataReader:  # pylint: disable=too-many-instance-attributes
    def __init__(self, tables: Any):
        self.tables = tables
        self.typedefs = _rows(tables, "TypeDef")
        self.typerefs = _rows(tables, "TypeRef")
        self.typespecs = _rows(tables, "TypeSpec")
        self.methods = _rows(tables, "MethodDef")
        self.fields = _rows(tables, "Field")
        self.params = _rows(tables, "Param")
        self.properties = _rows(tables, "Property")
        self.events = _rows(tables, "Event")
        self.member_refs = _rows(tables, "MemberRef")

        self.enclosing: Dict[int, int] = {}
        for row in _rows(tables, "NestedClass"):
            self.enclosing[_index(row.NestedClass)] = _index(row.EnclosingClass)

        generic: Dict[Tuple[Optional[str], int], List[Tuple[int, str]]] = {}
        for row in _rows(tables, "GenericParam"):
            generic.setdefault(_coded(row.Owner), []).append((int(row.Number), _text(row.Name)))
        self.generic_names = {k: [n for _, n in sorted(v)] for k, v in generic.items()}

        self.constants: Dict[Tuple[Optional[str], int], Any] = {}
        for row in _rows(tables, "Constant"):
            try:
                self.constants[_coded(row.Parent)] = decode_constant(int(row.Type), _blob(row.Value))
            except (SignatureError, ValueError, IndexError) as exc:
                logger.debug("Skipping undecodable constant: %s", exc)

        self._typedef_names: Dict[int, Tuple[str, str, str]] = {}
        self._typeref_names: Dict[int, Tuple[str, str]] = {}

    # ----------------------------
    # Names
    # ----------------------------

    def typedef_names(self, index: int) -> Tuple[str, str, str]:
        """(metadata name ``Ns.Outer+Inner`1``, display ``Ns.Outer.Inner``, doc prefix ``Ns.Outer.Inner`1``)."""
        cached = self._typedef_names.get(index)
        if cached is not None:
            return cached
        row = self.typedefs[index - 1]
        name = _text(row.TypeName)
        outer = self.enclosing.get(index)
        if outer:
            outer_meta, outer_display, outer_doc = self.typedef_names(outer)
            names = (f"{outer_meta}+{name}", f"{outer_display}.{strip_arity(name)}", f"{outer_doc}.{name}")
        else:
            ns = _text(row.TypeNamespace)
            prefix = f"{ns}." if ns else ""
            names = (prefix + name, prefix + strip_arity(name), prefix + name)
        self._typedef_names[index] = names
        return names

    def typeref_names(self, index: int) -> Tuple[str, str]:
        cached = self._typeref_names.get(index)
        if cached is not None:
            return cached
        row = self.typerefs[index - 1]
        name = _text(row.TypeName)
        scope_table, scope_index = _coded(row.ResolutionScope)
        if scope_table == "TypeRef" and scope_index and scope_index != index:
            outer_meta, outer_display = self.typeref_names(scope_index)
            names = (f"{outer_meta}+{name}", f"{outer_display}.{strip_arity(name)}")
        else:
            ns = _text(row.TypeNamespace)
            prefix = f"{ns}." if ns else ""
            names = (prefix + name, prefix + strip_arity(name))
        self._typeref_names[index] = names
        return names

    def resolve(self, tag: int, index: int) -> Tuple[str, str]:
        """TypeDefOrRef resolver handed to ``SignatureReader``."""
        if index <= 0:
            return ("?", "?")
        if tag == 0 and index <= len(self.typedefs):
            meta, shown, _ = self.typedef_names(index)
            return meta, shown
        if tag == 1 and index <= len(self.typerefs):
            return self.typeref_names(index)
        if tag == 2 and index <= len(self.typespecs):
            sig = SignatureReader(_blob(self.typespecs[index - 1].Signature), self.resolve).read_type()
            return doc_name(sig), display(sig)
        return ("?", "?")

    def _resolve_coded(self, ref: Any) -> Tuple[Optional[str], int, str, str]:
        table, index = _coded(ref)
        if table not in _TYPEDEFORREF or not index:
            return table, index, "", ""
        meta, shown = self.resolve(_TYPEDEFORREF.index(table), index)
        return table, index, meta, shown

    # ----------------------------
    # Graph
    # ----------------------------

    def build(self, file_name: str, documentation: Optional[XmlDocumentation]) -> AssemblyNode:
        assembly_row = _rows(self.tables, "Assembly")[0]
        assembly = AssemblyNode(
            name=_text(assembly_row.Name) or os.path.splitext(file_name)[0],
            version=self._version(assembly_row),
            references=[
                AssemblyReference(_text(r.Name), self._version(r)) for r in _rows(self.tables, "AssemblyRef")
            ],
            is_reference_assembly=self._is_reference_assembly(),
            documentation=documentation,
        )

        nodes: Dict[int, TypeNode] = {}
        base_names: Dict[int, str] = {}
        for index, row in enumerate(self.typedefs, start=1):
            name = _text(row.TypeName)
            if name == "<Module>":
                continue
            _, _, base_meta, _ = self._resolve_coded(row.Extends)
            base_names[index] = base_meta
            nodes[index] = self._type_node(index, row, base_meta)

        for index, node in nodes.items():
            outer = self.enclosing.get(index)
            if outer in nodes:
                node.containing_type = nodes[outer]
            node.base_type = self._type_ref(self.typedefs[index - 1].Extends, nodes)

        for row in _rows(self.tables, "InterfaceImpl"):
            owner = nodes.get(_index(row.Class))
            iface = self._type_ref(row.Interface, nodes)
            if owner is not None and iface is not None:
                owner.interfaces.append(iface)

        self._attach_members(nodes)
        assembly.types = list(nodes.values())
        return assembly

    @staticmethod
    def _version(row: Any) -> str:
        parts = (row.MajorVersion, row.MinorVersion, row.BuildNumber, row.RevisionNumber)
        return ".".join(str(int(p or 0)) for p in parts)

    def _is_reference_assembly(self) -> bool:
        for row in _rows(self.tables, "CustomAttribute"):
            parent_table, _ = _coded(row.Parent)
            if parent_table != "Assembly":
                continue
            ctor_table, ctor_index = _coded(row.Type)
            attribute_type = ""
            if ctor_table == "MemberRef" and 0 < ctor_index <= len(self.member_refs):
                _, _, attribute_type, _ = self._resolve_coded(self.member_refs[ctor_index - 1].Class)
            elif ctor_table == "MethodDef":
                attribute_type = self._method_owner_name(ctor_index)
            if attribute_type == Constants.REFERENCE_ASSEMBLY_ATTRIBUTE:
                return True
        return False

    def _method_owner_name(self, method_index: int) -> str:
        for index, row in enumerate(self.typedefs, start=1):
            if method_index in _refs(row.MethodList):
                return self.typedef_names(index)[0]
        return ""

    def _type_node(self, index: int, row: Any, base_meta: str) -> TypeNode:
        flags = _flags(row, "Flags")
        meta, _, doc_prefix = self.typedef_names(index)
        raw_name = _text(row.TypeName)
        arity = raw_name.rsplit("`", 1)[1] if "`" in raw_name else "0"
        own_count = int(arity) if arity.isdigit() else 0
        all_generic = self.generic_names.get(("TypeDef", index), [])
        own_generic = tuple(all_generic[len(all_generic) - own_count:]) if own_count else ()

        if flags & TD_INTERFACE:
            kind = TypeKind.INTERFACE
        elif base_meta == "System.Enum":
            kind = TypeKind.ENUM
        elif base_meta == "System.ValueType" and meta != "System.Enum":
            kind = TypeKind.STRUCT
        elif base_meta == "System.MulticastDelegate":
            kind = TypeKind.DELEGATE
        else:
            kind = TypeKind.CLASS
        is_abstract = bool(flags & TD_ABSTRACT)
        is_sealed = bool(flags & TD_SEALED)
        ns = "" if self.enclosing.get(index) else _text(row.TypeNamespace)
        return TypeNode(
            name=strip_arity(raw_name),
            namespace=ns,
            accessibility=type_accessibility(flags),
            kind=kind,
            is_static=kind is TypeKind.CLASS and is_abstract and is_sealed,
            is_abstract=is_abstract and kind is TypeKind.CLASS,
            is_sealed=is_sealed and kind is TypeKind.CLASS,
            generic_parameters=own_generic,
            metadata_name=meta,
            doc_id=f"T:{doc_prefix}",
        )

    def _type_ref(self, ref: Any, nodes: Dict[int, TypeNode]):
        table, index = _coded(ref)
        if not index:
            return None
        if table == "TypeDef":
            return nodes.get(index)
        if table == "TypeSpec" and index <= len(self.typespecs):
            definition = generic_definition(_blob(self.typespecs[index - 1].Signature))
            if definition is not None and definition[0] == 0 and definition[1] in nodes:
                return nodes[definition[1]]
        _, _, meta, shown = self._resolve_coded(ref)
        if table == "TypeRef" and "." in meta and "+" not in meta:
            ns, _, name = meta.rpartition(".")
            return TypeRefNode(namespace=ns, name=name)
        return TypeRefNode(namespace="", name=shown or meta)

    # ----------------------------
    # Members
    # ----------------------------

    def _attach_members(self, nodes: Dict[int, TypeNode]) -> None:
        semantics: Dict[int, Tuple[int, Optional[str], int]] = {}
        for row in _rows(self.tables, "MethodSemantics"):
            assoc_table, assoc_index = _coded(row.Association)
            semantics[_index(row.Method)] = (_flags(row, "Semantics"), assoc_table, assoc_index)

        accessors: Dict[Tuple[Optional[str], int], Dict[int, int]] = {}
        for method_index, (sem, assoc_table, assoc_index) in semantics.items():
            accessors.setdefault((assoc_table, assoc_index), {})[sem] = method_index

        for index, node in nodes.items():
            row = self.typedefs[index - 1]
            type_generic = self.generic_names.get(("TypeDef", index), [])
            doc_prefix = self.typedef_names(index)[2]

            for field_index in _refs(row.FieldList):
                member = self._field(field_index, node, type_generic, doc_prefix)
                if member is not None:
                    node.members.append(member)
            for method_index in _refs(row.MethodList):
                member = self._method(method_index, node, type_generic, doc_prefix, semantics)
                if member is not None:
                    node.members.append(member)

        for row in _rows(self.tables, "PropertyMap"):
            node = nodes.get(_index(row.Parent))
            if node is None:
                continue
            type_generic = self.generic_names.get(("TypeDef", _index(row.Parent)), [])
            doc_prefix = self.typedef_names(_index(row.Parent))[2]
            for prop_index in _refs(row.PropertyList):
                member = self._property(prop_index, node, type_generic, doc_prefix, accessors)
                if member is not None:
                    node.members.append(member)

        for row in _rows(self.tables, "EventMap"):
            node = nodes.get(_index(row.Parent))
            if node is None:
                continue
            doc_prefix = self.typedef_names(_index(row.Parent))[2]
            for event_index in _refs(row.EventList):
                member = self._event(event_index, node, doc_prefix, accessors)
                if member is not None:
                    node.members.append(member)

    def _field(self, index: int, owner: TypeNode, type_generic: Sequence[str], doc_prefix: str) -> Optional[MemberNode]:
        if not 0 < index <= len(self.fields):
            return None
        row = self.fields[index - 1]
        flags = _flags(row, "Flags")
        if flags & FD_RT_SPECIAL_NAME:
            return None
        name = _text(row.Name)
        try:
            type_name = display(SignatureReader(_blob(row.Signature), self.resolve).read_field(), type_generic)
        except SignatureError as exc:
            logger.debug("Field %s.%s: %s", owner.full_name, name, exc)
            type_name = "?"
        constant_key = ("Field", index)
        return MemberNode(
            name=name,
            kind=MemberKind.FIELD,
            accessibility=member_accessibility(flags),
            is_static=bool(flags & FD_STATIC) and not flags & FD_LITERAL,
            is_readonly=bool(flags & FD_INIT_ONLY),
            is_const=bool(flags & FD_LITERAL),
            has_constant=constant_key in self.constants,
            constant_value=self.constants.get(constant_key),
            type_name=owner.name if owner.kind is TypeKind.ENUM and flags & FD_LITERAL else type_name,
            declaring_type=owner,
            doc_id=f"F:{doc_prefix}.{name}",
        )

    def _method_kind(self, name: str, flags: int, param_count: int, sem: Optional[int]) -> MethodKind:
        if name == ".ctor":
            return MethodKind.CONSTRUCTOR
        if name == ".cctor":
            return MethodKind.STATIC_CONSTRUCTOR
        if sem is not None:
            return MethodKind.PROPERTY_ACCESSOR if sem & (MS_GETTER | MS_SETTER) else MethodKind.EVENT_ACCESSOR
        if flags & MD_SPECIAL_NAME and name.startswith("op_"):
            return MethodKind.OPERATOR
        if name == "Finalize" and param_count == 0 and flags & MD_VIRTUAL and not flags & MD_NEWSLOT:
            return MethodKind.DESTRUCTOR
        return MethodKind.ORDINARY

    def _parameters(self, method_row: Any, method_index: int, sigs: Sequence[TypeSig],
                    type_generic: Sequence[str], method_generic: Sequence[str]) -> Tuple[ParameterNode, ...]:
        by_sequence: Dict[int, Tuple[Any, int]] = {}
        for param_index in _refs(method_row.ParamList):
            if 0 < param_index <= len(self.params):
                param = self.params[param_index - 1]
                by_sequence[int(param.Sequence)] = (param, param_index)
        result = []
        for position, sig in enumerate(sigs, start=1):
            param, param_index = by_sequence.get(position, (None, 0))
            flags = _flags(param, "Flags") if param is not None else 0
            modifier = ""
            if sig.kind == "byref":
                modifier = "out" if flags & PD_OUT and not flags & PD_IN else ("in" if flags & PD_IN else "ref")
            constant_key = ("Param", param_index)
            result.append(
                ParameterNode(
                    name=_text(param.Name) if param is not None else f"arg{position}",
                    type_name=display(sig, type_generic, method_generic),
                    modifier=modifier,
                    has_default=bool(flags & PD_HAS_DEFAULT) and constant_key in self.constants,
                    default_value=self.constants.get(constant_key),
                )
            )
        return tuple(result)

    def _method(self, index: int, owner: TypeNode, type_generic: Sequence[str], doc_prefix: str,
                semantics: Dict[int, Tuple[int, Optional[str], int]]) -> Optional[MemberNode]:
        if not 0 < index <= len(self.methods):
            return None
        row = self.methods[index - 1]
        flags = _flags(row, "Flags")
        name = _text(row.Name)
        method_generic = self.generic_names.get(("MethodDef", index), [])
        try:
            ret, param_sigs, generic_count = SignatureReader(_blob(row.Signature), self.resolve).read_method()
        except SignatureError as exc:
            logger.debug("Method %s.%s: %s", owner.full_name, name, exc)
            return None

        sem = semantics.get(index, (None,))[0]
        kind = self._method_kind(name, flags, len(param_sigs), sem)
        is_virtual_slot = bool(flags & MD_VIRTUAL)
        is_override = is_virtual_slot and not flags & MD_NEWSLOT and owner.kind is not TypeKind.INTERFACE
        is_abstract = bool(flags & MD_ABSTRACT)

        doc_name_part = name.replace(".", "#")
        if generic_count:
            doc_name_part += f"``{generic_count}"
        doc_id = f"M:{doc_prefix}.{doc_name_part}"
        if param_sigs:
            doc_id += "(" + ",".join(doc_name(s) for s in param_sigs) + ")"
        if name in ("op_Implicit", "op_Explicit"):
            doc_id += "~" + doc_name(ret)

        return MemberNode(
            name=name,
            kind=MemberKind.CONSTRUCTOR if kind is MethodKind.CONSTRUCTOR else MemberKind.METHOD,
            accessibility=member_accessibility(flags),
            method_kind=kind,
            is_static=bool(flags & MD_STATIC),
            is_abstract=is_abstract,
            is_virtual=is_virtual_slot and not is_override and not is_abstract and not flags & MD_FINAL,
            is_override=is_override,
            is_sealed=is_override and bool(flags & MD_FINAL),
            type_name=display(ret, type_generic, method_generic),
            parameters=self._parameters(row, index, param_sigs, type_generic, method_generic),
            generic_parameters=tuple(method_generic),
            declaring_type=owner,
            doc_id=doc_id,
        )

    def _accessor_rows(self, methods: Dict[int, int], *wanted: int) -> List[Tuple[int, Any]]:
        found = []
        for sem, method_index in methods.items():
            if any(sem & w for w in wanted) and 0 < method_index <= len(self.methods):
                found.append((sem, self.methods[method_index - 1]))
        return found

    def _property(self, index: int, owner: TypeNode, type_generic: Sequence[str], doc_prefix: str,
                  accessors: Dict[Tuple[Optional[str], int], Dict[int, int]]) -> Optional[MemberNode]:
        if not 0 < index <= len(self.properties):
            return None
        row = self.properties[index - 1]
        name = _text(row.Name)
        try:
            prop_type, param_sigs = SignatureReader(_blob(row.Type), self.resolve).read_property()
        except SignatureError as exc:
            logger.debug("Property %s.%s: %s", owner.full_name, name, exc)
            return None
        methods = accessors.get(("Property", index), {})
        rows = self._accessor_rows(methods, MS_GETTER, MS_SETTER)
        if not rows:
            return None
        has_getter = any(sem & MS_GETTER for sem, _ in rows)
        has_setter = any(sem & MS_SETTER for sem, _ in rows)
        access = max((member_accessibility(_flags(r, "Flags")) for _, r in rows), key=_ACCESS_RANK.get)
        flags = _flags(rows[0][1], "Flags")
        is_override = bool(flags & MD_VIRTUAL) and not flags & MD_NEWSLOT and owner.kind is not TypeKind.INTERFACE
        is_abstract = bool(flags & MD_ABSTRACT)

        parameters: Tuple[ParameterNode, ...] = ()
        if param_sigs:
            getter = next((r for sem, r in rows if sem & MS_GETTER), None)
            names: List[str] = []
            if getter is not None:
                for param_index in _refs(getter.ParamList):
                    if 0 < param_index <= len(self.params) and int(self.params[param_index - 1].Sequence) > 0:
                        names.append(_text(self.params[param_index - 1].Name))
            parameters = tuple(
                ParameterNode(name=names[i] if i < len(names) else f"arg{i + 1}", type_name=display(s, type_generic))
                for i, s in enumerate(param_sigs)
            )
        doc_id = f"P:{doc_prefix}.{name}"
        if param_sigs:
            doc_id += "(" + ",".join(doc_name(s) for s in param_sigs) + ")"
        return MemberNode(
            name=name,
            kind=MemberKind.PROPERTY,
            accessibility=access,
            is_static=bool(flags & MD_STATIC),
            is_abstract=is_abstract,
            is_virtual=bool(flags & MD_VIRTUAL) and not is_override and not is_abstract and not flags & MD_FINAL,
            is_override=is_override,
            is_sealed=is_override and bool(flags & MD_FINAL),
            type_name=display(prop_type, type_generic),
            parameters=parameters,
            has_getter=has_getter,
            has_setter=has_setter,
            is_indexer=bool(param_sigs),
            declaring_type=owner,
            doc_id=doc_id,
        )

    def _event(self, index: int, owner: TypeNode, doc_prefix: str,
               accessors: Dict[Tuple[Optional[str], int], Dict[int, int]]) -> Optional[MemberNode]:
        if not 0 < index <= len(self.events):
            return None
        row = self.events[index - 1]
        name = _text(row.Name)
        rows = self._accessor_rows(accessors.get(("Event", index), {}), MS_ADD_ON)
        flags = _flags(rows[0][1], "Flags") if rows else 0
        _, _, _, shown = self._resolve_coded(row.EventType)
        return MemberNode(
            name=name,
            kind=MemberKind.EVENT,
            accessibility=member_accessibility(flags),
            is_static=bool(flags & MD_STATIC),
            type_name=shown or "?",
            declaring_type=owner,
            doc_id=f"E:{doc_prefix}.{name}",
        )
