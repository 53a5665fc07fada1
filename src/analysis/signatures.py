"""Decoder for ECMA-335 signature blobs (II.23.2).

Signatures are decoded into small ``TypeSig`` trees which render either as
C# display text (``List<string>``) or as documentation-id text
(``System.Collections.Generic.List{System.String}``).
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

# Element types
ELEMENT_TYPE_VOID = 0x01
ELEMENT_TYPE_PTR = 0x0F
ELEMENT_TYPE_BYREF = 0x10
ELEMENT_TYPE_VALUETYPE = 0x11
ELEMENT_TYPE_CLASS = 0x12
ELEMENT_TYPE_VAR = 0x13
ELEMENT_TYPE_ARRAY = 0x14
ELEMENT_TYPE_GENERICINST = 0x15
ELEMENT_TYPE_FNPTR = 0x1B
ELEMENT_TYPE_SZARRAY = 0x1D
ELEMENT_TYPE_MVAR = 0x1E
ELEMENT_TYPE_CMOD_REQD = 0x1F
ELEMENT_TYPE_CMOD_OPT = 0x20
ELEMENT_TYPE_SENTINEL = 0x41
ELEMENT_TYPE_PINNED = 0x45

# Calling convention flags
SIG_GENERIC = 0x10
SIG_HASTHIS = 0x20
SIG_FIELD = 0x06
SIG_PROPERTY = 0x08

PRIMITIVES = {
    0x01: ("System.Void", "void"),
    0x02: ("System.Boolean", "bool"),
    0x03: ("System.Char", "char"),
    0x04: ("System.SByte", "sbyte"),
    0x05: ("System.Byte", "byte"),
    0x06: ("System.Int16", "short"),
    0x07: ("System.UInt16", "ushort"),
    0x08: ("System.Int32", "int"),
    0x09: ("System.UInt32", "uint"),
    0x0A: ("System.Int64", "long"),
    0x0B: ("System.UInt64", "ulong"),
    0x0C: ("System.Single", "float"),
    0x0D: ("System.Double", "double"),
    0x0E: ("System.String", "string"),
    0x16: ("System.TypedReference", "TypedReference"),
    0x18: ("System.IntPtr", "nint"),
    0x19: ("System.UIntPtr", "nuint"),
    0x1C: ("System.Object", "object"),
}


class SignatureError(ValueError):
    pass


@dataclass(frozen=True)
class TypeSig:
    """One node of a decoded type signature.

    ``kind`` is one of: prim, named, generic, array, ptr, byref, var, mvar, fnptr.
    """
    kind: str
    name: str = ""          # full metadata name for prim/named (``Ns.Outer+Inner`1``)
    display: str = ""       # C# name for prim/named (``string``, ``Outer.Inner``)
    element: Optional["TypeSig"] = None
    args: Tuple["TypeSig", ...] = ()
    rank: int = 1
    index: int = 0

    @property
    def is_void(self) -> bool:
        return self.kind == "prim" and self.name == "System.Void"


# (table tag, row index) -> (metadata name, C# display name)
TypeResolver = Callable[[int, int], Tuple[str, str]]

_TYPEDEFORREF_TAGS = ("TypeDef", "TypeRef", "TypeSpec")


class SignatureReader:
    def __init__(self, blob: bytes, resolve: TypeResolver):
        self._blob = bytes(blob or b"")
        self._pos = 0
        self._resolve = resolve

    def _byte(self) -> int:
        if self._pos >= len(self._blob):
            raise SignatureError("signature blob ended unexpectedly")
        value = self._blob[self._pos]
        self._pos += 1
        return value

    def _peek(self) -> int:
        if self._pos >= len(self._blob):
            raise SignatureError("signature blob ended unexpectedly")
        return self._blob[self._pos]

    def compressed_uint(self) -> int:
        first = self._byte()
        if first & 0x80 == 0:
            return first
        if first & 0xC0 == 0x80:
            return ((first & 0x3F) << 8) | self._byte()
        return ((first & 0x1F) << 24) | (self._byte() << 16) | (self._byte() << 8) | self._byte()

    def compressed_int(self) -> int:
        # Only used to skip array lower bounds; the sign rotation does not matter for display.
        return self.compressed_uint()

    def type_def_or_ref(self) -> Tuple[str, str]:
        coded = self.compressed_uint()
        tag, index = coded & 0x03, coded >> 2
        if tag >= len(_TYPEDEFORREF_TAGS):
            raise SignatureError(f"bad TypeDefOrRef tag {tag}")
        return self._resolve(tag, index)

    def _skip_custom_mods(self) -> None:
        while self._pos < len(self._blob) and self._peek() in (ELEMENT_TYPE_CMOD_OPT, ELEMENT_TYPE_CMOD_REQD):
            self._byte()
            self.compressed_uint()

    def read_type(self) -> TypeSig:
        self._skip_custom_mods()
        code = self._byte()
        if code in PRIMITIVES:
            name, shown = PRIMITIVES[code]
            return TypeSig("prim", name=name, display=shown)
        if code in (ELEMENT_TYPE_CLASS, ELEMENT_TYPE_VALUETYPE):
            name, shown = self.type_def_or_ref()
            return TypeSig("named", name=name, display=shown)
        if code == ELEMENT_TYPE_VAR:
            return TypeSig("var", index=self.compressed_uint())
        if code == ELEMENT_TYPE_MVAR:
            return TypeSig("mvar", index=self.compressed_uint())
        if code == ELEMENT_TYPE_SZARRAY:
            return TypeSig("array", element=self.read_type(), rank=1)
        if code == ELEMENT_TYPE_ARRAY:
            element = self.read_type()
            rank = self.compressed_uint()
            for _ in range(self.compressed_uint()):
                self.compressed_uint()
            for _ in range(self.compressed_uint()):
                self.compressed_int()
            return TypeSig("array", element=element, rank=max(rank, 1))
        if code == ELEMENT_TYPE_GENERICINST:
            self._byte()  # CLASS or VALUETYPE
            name, shown = self.type_def_or_ref()
            count = self.compressed_uint()
            args = tuple(self.read_type() for _ in range(count))
            return TypeSig("generic", element=TypeSig("named", name=name, display=shown), args=args)
        if code == ELEMENT_TYPE_PTR:
            return TypeSig("ptr", element=self.read_type())
        if code == ELEMENT_TYPE_BYREF:
            return TypeSig("byref", element=self.read_type())
        if code == ELEMENT_TYPE_PINNED:
            return self.read_type()
        if code == ELEMENT_TYPE_FNPTR:
            self.read_method()
            return TypeSig("fnptr")
        raise SignatureError(f"unsupported element type 0x{code:02x}")

    def read_method(self) -> Tuple[TypeSig, List[TypeSig], int]:
        """Return (return type, parameter types, generic parameter count)."""
        convention = self._byte()
        generic_count = self.compressed_uint() if convention & SIG_GENERIC else 0
        count = self.compressed_uint()
        ret = self.read_type()
        params = []
        for _ in range(count):
            if self._pos < len(self._blob) and self._peek() == ELEMENT_TYPE_SENTINEL:
                self._byte()
            params.append(self.read_type())
        return ret, params, generic_count

    def read_field(self) -> TypeSig:
        if self._byte() != SIG_FIELD:
            raise SignatureError("not a field signature")
        return self.read_type()

    def read_property(self) -> Tuple[TypeSig, List[TypeSig]]:
        if self._byte() & 0x0F != SIG_PROPERTY:
            raise SignatureError("not a property signature")
        count = self.compressed_uint()
        prop_type = self.read_type()
        return prop_type, [self.read_type() for _ in range(count)]


def _generic_name(names: Sequence[str], index: int, fallback: str) -> str:
    return names[index] if index < len(names) else f"{fallback}{index}"


def display(sig: TypeSig, type_params: Sequence[str] = (), method_params: Sequence[str] = ()) -> str:
    """C# display text of a type signature."""
    if sig.kind in ("prim", "named"):
        return sig.display
    if sig.kind == "generic":
        base = sig.element.display.split("`", 1)[0]
        if base == "Nullable" or sig.element.name == "System.Nullable`1":
            return display(sig.args[0], type_params, method_params) + "?"
        inner = ", ".join(display(a, type_params, method_params) for a in sig.args)
        return f"{base}<{inner}>"
    if sig.kind == "array":
        return display(sig.element, type_params, method_params) + "[" + "," * (sig.rank - 1) + "]"
    if sig.kind == "ptr":
        return display(sig.element, type_params, method_params) + "*"
    if sig.kind == "byref":
        return display(sig.element, type_params, method_params)
    if sig.kind == "var":
        return _generic_name(type_params, sig.index, "T")
    if sig.kind == "mvar":
        return _generic_name(method_params, sig.index, "TM")
    return "delegate*"


def doc_name(sig: TypeSig) -> str:
    """Documentation-id spelling of a type signature (C# documentation comment id rules)."""
    if sig.kind in ("prim", "named"):
        return sig.name.replace("+", ".")
    if sig.kind == "generic":
        base = sig.element.name.replace("+", ".").split("`", 1)[0]
        return base + "{" + ",".join(doc_name(a) for a in sig.args) + "}"
    if sig.kind == "array":
        if sig.rank == 1:
            return doc_name(sig.element) + "[]"
        return doc_name(sig.element) + "[" + ",".join("0:" for _ in range(sig.rank)) + "]"
    if sig.kind == "ptr":
        return doc_name(sig.element) + "*"
    if sig.kind == "byref":
        return doc_name(sig.element) + "@"
    if sig.kind == "var":
        return f"`{sig.index}"
    if sig.kind == "mvar":
        return f"``{sig.index}"
    return "System.IntPtr"


class CharValue(str):
    """A char constant, rendered with single quotes."""


_CONSTANT_FORMATS = {
    0x04: "<b",
    0x05: "<B",
    0x06: "<h",
    0x07: "<H",
    0x08: "<i",
    0x09: "<I",
    0x0A: "<q",
    0x0B: "<Q",
    0x0C: "<f",
    0x0D: "<d",
}


def decode_constant(element_type: int, blob: bytes):
    """Value of a Constant table row; None for null references."""
    blob = bytes(blob or b"")
    if element_type == 0x02:
        return bool(blob[0]) if blob else False
    if element_type == 0x0E:
        return blob.decode("utf-16-le") if blob else ""
    if element_type == 0x03:
        return CharValue(chr(struct.unpack("<H", blob[:2])[0]))
    fmt = _CONSTANT_FORMATS.get(element_type)
    if fmt is None:
        return None
    size = struct.calcsize(fmt)
    if len(blob) < size:
        raise SignatureError("constant blob too short")
    return struct.unpack(fmt, blob[:size])[0]


def format_value(value) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, CharValue):
        return f"'{value}'"
    if isinstance(value, str):
        return f'"{value}"'
    return str(value)


def generic_definition(blob: bytes) -> Optional[Tuple[int, int]]:
    """(TypeDefOrRef tag, row index) of the definition in a GENERICINST TypeSpec blob."""
    blob = bytes(blob or b"")
    if len(blob) < 3 or blob[0] != ELEMENT_TYPE_GENERICINST:
        return None
    found: List[Tuple[int, int]] = []

    def _capture(tag: int, index: int) -> Tuple[str, str]:
        found.append((tag, index))
        return ("", "")

    reader = SignatureReader(blob[2:], _capture)
    reader.type_def_or_ref()
    return found[0]
