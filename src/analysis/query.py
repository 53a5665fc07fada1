"""Read-only queries over an analyzed assembly's symbol graph."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Union

from errors import InvalidInputError, InvalidPatternError, TypeNotFoundError
from .models import AnalysisResult, MemberKind, MemberNode, MethodKind, TypeKind, TypeNode, TypeRefNode

TYPE_KIND_FILTERS = {
    "*": None,
    "any": None,
    "class": TypeKind.CLASS,
    "interface": TypeKind.INTERFACE,
    "enum": TypeKind.ENUM,
    "struct": TypeKind.STRUCT,
    "delegate": TypeKind.DELEGATE,
}

MEMBER_KIND_FILTERS = ("*", "any", "method", "constructor", "property", "field", "event")


def wildcard_to_regex(pattern: Optional[str]) -> re.Pattern:
    """Compile a ``*`` wildcard into a case-insensitive search regex.

    Matching is unanchored, so ``Stream`` behaves like ``*Stream*``. An empty
    pattern or ``*`` matches everything.
    """
    text = (pattern or "").strip()
    if not text or text == "*":
        return re.compile(".*", re.DOTALL)
    try:
        return re.compile(re.escape(text).replace(r"\*", ".*"), re.IGNORECASE)
    except re.error as exc:
        raise InvalidPatternError(f"Invalid name pattern '{pattern}': {exc}") from exc


def find_type(analysis: AnalysisResult, name: str) -> TypeNode:
    """Look a type up by full name, display name, minimal display name, then simple name."""
    wanted = (name or "").strip()
    lookups = (
        lambda t: t.full_name == wanted or t.metadata_name == wanted,
        lambda t: t.display_name == wanted,
        lambda t: t.minimal_display_name == wanted or t.minimal_name == wanted,
        lambda t: t.name == wanted,
    )
    for matches in lookups:
        for type_node in analysis.all_types:
            if matches(type_node):
                return type_node
    raise TypeNotFoundError(wanted)


@dataclass(frozen=True)
class TypeListing:
    types: List[TypeNode]
    total: int

    @property
    def truncated(self) -> bool:
        return self.total > len(self.types)


def list_types(
    analysis: AnalysisResult,
    name_pattern: Optional[str] = "*",
    kind: str = "any",
    public_only: bool = True,
    limit: int = 50,
) -> TypeListing:
    """Filter by visibility, kind and name; sort by simple name; keep the first ``limit``."""
    kind_key = (kind or "*").strip().lower()
    if kind_key not in TYPE_KIND_FILTERS:
        raise InvalidInputError(
            f"Unknown type filter '{kind}', expected one of: class, interface, enum, struct, delegate, *"
        )
    if limit < 0:
        raise InvalidInputError(f"maxResults must not be negative (got {limit})")
    wanted_kind = TYPE_KIND_FILTERS[kind_key]
    regex = wildcard_to_regex(name_pattern)

    matched = []
    for type_node in analysis.all_types:
        if public_only and not type_node.is_public:
            continue
        if wanted_kind is not None:
            if type_node.kind is not wanted_kind:
                continue
            if wanted_kind is TypeKind.CLASS and type_node.is_static:
                continue
        if not regex.search(type_node.full_name):
            continue
        matched.append(type_node)
    matched.sort(key=lambda t: t.name)
    return TypeListing(types=matched[:limit], total=len(matched))


def base_chain(type_node: TypeNode) -> List[Union[TypeNode, TypeRefNode]]:
    """Base types from the direct base outward, ending at the first type outside the assembly."""
    chain: List[Union[TypeNode, TypeRefNode]] = []
    seen = set()
    current = type_node.base_type
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        chain.append(current)
        current = current.base_type if isinstance(current, TypeNode) else None
    return chain


def _walk(type_node: TypeNode, include_inherited: bool) -> Iterable[TypeNode]:
    yield type_node
    if include_inherited:
        for base in base_chain(type_node):
            if isinstance(base, TypeNode):
                yield base


def interfaces(type_node: TypeNode, include_inherited: bool = False) -> List[Union[TypeNode, TypeRefNode]]:
    result: List[Union[TypeNode, TypeRefNode]] = []
    seen = set()
    for level in _walk(type_node, include_inherited):
        for iface in level.interfaces:
            key = iface.full_name if isinstance(iface, TypeRefNode) else id(iface)
            if key not in seen:
                seen.add(key)
                result.append(iface)
    return result


@dataclass
class MemberListing:
    constructors: List[MemberNode] = field(default_factory=list)
    methods: List[MemberNode] = field(default_factory=list)
    properties: List[MemberNode] = field(default_factory=list)
    fields: List[MemberNode] = field(default_factory=list)
    events: List[MemberNode] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.constructors) + len(self.methods) + len(self.properties) + len(self.fields) + len(self.events)


def list_members(
    type_node: TypeNode,
    include_inherited: bool = False,
    public_only: bool = True,
    name_pattern: Optional[str] = None,
    kind: str = "any",
) -> MemberListing:
    """Collect members of ``type_node`` (and of its in-assembly bases) grouped by kind.

    Members are deduplicated by identity only, so an override and the member
    it overrides are both returned.
    """
    kind_key = (kind or "*").strip().lower()
    if kind_key not in MEMBER_KIND_FILTERS:
        raise InvalidInputError(
            f"Unknown member type '{kind}', expected one of: method, property, field, event, constructor, *"
        )
    regex = wildcard_to_regex(name_pattern) if name_pattern and name_pattern.strip() else None

    collected: List[MemberNode] = []
    seen = set()
    for level in _walk(type_node, include_inherited):
        for member in level.members:
            if id(member) in seen:
                continue
            seen.add(id(member))
            collected.append(member)

    if public_only:
        collected = [m for m in collected if m.is_public]
    if regex is not None:
        collected = [m for m in collected if regex.search(m.name)]

    def wanted(bucket: str) -> bool:
        return kind_key in ("*", "any") or kind_key == bucket

    listing = MemberListing()
    if wanted("constructor"):
        ctors = [m for m in collected if m.method_kind is MethodKind.CONSTRUCTOR]
        listing.constructors = sorted(ctors, key=lambda m: len(m.parameters))
    if wanted("method"):
        listing.methods = [
            m for m in collected if m.kind is MemberKind.METHOD and m.method_kind is MethodKind.ORDINARY
        ]
    if wanted("property"):
        listing.properties = sorted((m for m in collected if m.kind is MemberKind.PROPERTY), key=lambda m: m.name)
    if wanted("field"):
        listing.fields = sorted((m for m in collected if m.kind is MemberKind.FIELD), key=lambda m: m.name)
    if wanted("event"):
        listing.events = sorted((m for m in collected if m.kind is MemberKind.EVENT), key=lambda m: m.name)
    return listing
