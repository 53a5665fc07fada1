"""Symbol graph and analysis result models.

The graph is produced once per analyzed assembly and never mutated after the
analyzer hands it over. Nodes compare by identity: an override and the
method it overrides are distinct members, as are two types that happen to
share a name.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Tuple, Union

from constants import Constants


class Accessibility(Enum):
    PUBLIC = "public"
    PROTECTED = "protected"
    INTERNAL = "internal"
    PROTECTED_INTERNAL = "protected internal"
    PRIVATE_PROTECTED = "private protected"
    PRIVATE = "private"


class TypeKind(Enum):
    CLASS = "class"
    INTERFACE = "interface"
    ENUM = "enum"
    STRUCT = "struct"
    DELEGATE = "delegate"


class MemberKind(Enum):
    METHOD = "method"
    CONSTRUCTOR = "constructor"
    PROPERTY = "property"
    FIELD = "field"
    EVENT = "event"


class MethodKind(Enum):
    ORDINARY = "ordinary"
    CONSTRUCTOR = "constructor"
    STATIC_CONSTRUCTOR = "static_constructor"
    PROPERTY_ACCESSOR = "property_accessor"
    EVENT_ACCESSOR = "event_accessor"
    OPERATOR = "operator"
    DESTRUCTOR = "destructor"


@dataclass(frozen=True)
class ParameterNode:
    name: str
    type_name: str
    modifier: str = ""  # "ref", "out", "in" or ""
    has_default: bool = False
    default_value: Any = None


@dataclass(frozen=True)
class TypeRefNode:
    """A type defined outside the analyzed assembly; only its name is known."""
    namespace: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.namespace}.{self.name}" if self.namespace else self.name

    @property
    def display_name(self) -> str:
        return self.full_name.split("`", 1)[0]


@dataclass(eq=False)
class MemberNode:
    name: str
    kind: MemberKind
    accessibility: Accessibility
    method_kind: Optional[MethodKind] = None
    is_static: bool = False
    is_abstract: bool = False
    is_virtual: bool = False
    is_override: bool = False
    is_sealed: bool = False
    is_readonly: bool = False
    is_const: bool = False
    has_constant: bool = False
    constant_value: Any = None
    type_name: Optional[str] = None  # return, property, field or event type
    parameters: Tuple[ParameterNode, ...] = ()
    generic_parameters: Tuple[str, ...] = ()
    has_getter: bool = False
    has_setter: bool = False
    is_indexer: bool = False
    declaring_type: Optional["TypeNode"] = field(default=None, repr=False)
    doc_id: Optional[str] = None

    @property
    def is_public(self) -> bool:
        return self.accessibility is Accessibility.PUBLIC


@dataclass(eq=False)
class TypeNode:
    name: str
    namespace: str
    accessibility: Accessibility
    kind: TypeKind
    is_static: bool = False
    is_abstract: bool = False
    is_sealed: bool = False
    generic_parameters: Tuple[str, ...] = ()
    containing_type: Optional["TypeNode"] = field(default=None, repr=False)
    base_type: Optional[Union["TypeNode", TypeRefNode]] = field(default=None, repr=False)
    interfaces: List[Union["TypeNode", TypeRefNode]] = field(default_factory=list, repr=False)
    members: List[MemberNode] = field(default_factory=list, repr=False)
    metadata_name: Optional[str] = None
    doc_id: Optional[str] = None

    @property
    def is_public(self) -> bool:
        return self.accessibility is Accessibility.PUBLIC

    def _nesting(self) -> List["TypeNode"]:
        chain = []
        node: Optional[TypeNode] = self
        while node is not None:
            chain.append(node)
            node = node.containing_type
        chain.reverse()
        return chain

    @property
    def minimal_name(self) -> str:
        """Name without namespace, nested types joined with '.' (``Outer.Inner``)."""
        return ".".join(t.name for t in self._nesting())

    @property
    def full_name(self) -> str:
        """Namespace-qualified name without generic parameters (``Ns.Outer.Inner``)."""
        root_ns = self._nesting()[0].namespace
        return f"{root_ns}.{self.minimal_name}" if root_ns else self.minimal_name

    @property
    def minimal_display_name(self) -> str:
        parts = []
        for t in self._nesting():
            parts.append(f"{t.name}<{', '.join(t.generic_parameters)}>" if t.generic_parameters else t.name)
        return ".".join(parts)

    @property
    def display_name(self) -> str:
        """Fully qualified C# display form (``Ns.Outer.Inner<T>``)."""
        root_ns = self._nesting()[0].namespace
        return f"{root_ns}.{self.minimal_display_name}" if root_ns else self.minimal_display_name

    @property
    def containing_namespace(self) -> str:
        return self._nesting()[0].namespace


@dataclass(frozen=True)
class AssemblyReference:
    name: str
    version: str

    def __str__(self) -> str:
        return f"{self.name} ({self.version})"


@dataclass(eq=False)
class AssemblyNode:
    """Root of the symbol graph for one assembly."""
    name: str
    version: str
    types: List[TypeNode] = field(default_factory=list)
    references: List[AssemblyReference] = field(default_factory=list)
    is_reference_assembly: bool = False
    documentation: Optional["DocumentationProvider"] = field(default=None, repr=False)


class DocumentationProvider(Protocol):
    def comment_text(self, doc_id: Optional[str], indent: int = 0) -> Optional[str]:
        ...


class AssemblyAnalyzer(Protocol):
    """Turns an assembly file into a symbol graph; None when the file is not a managed assembly."""

    def analyze(self, path: str, doc_path: Optional[str] = None) -> Optional[AssemblyNode]:
        ...


def normalize_artifact_name(
    package_id: str,
    artifact_name: Optional[str],
    extensions: Tuple[str, ...] = Constants.ASSEMBLY_EXTENSIONS,
) -> str:
    """Default the name to the package id and make sure it ends with an accepted extension."""
    name = (artifact_name or "").strip() or package_id
    if not name.lower().endswith(tuple(e.lower() for e in extensions)):
        name += extensions[0]
    return name


@dataclass(frozen=True)
class ResolvedArtifactKey:
    """Cache identity of one analyzed assembly.

    ``version`` is the resolved version, or ``"latest"`` for the alias. Package id
    and artifact name are case-insensitive and stored lower-cased.
    """
    package_id: str
    version: str
    artifact_name: str
    platform_tag: Optional[str]

    @classmethod
    def create(
        cls,
        package_id: str,
        version: Optional[str],
        artifact_name: Optional[str],
        platform_tag: Optional[str],
        extensions: Tuple[str, ...] = Constants.ASSEMBLY_EXTENSIONS,
    ) -> "ResolvedArtifactKey":
        version_part = (version or "").strip() or Constants.LATEST
        return cls(
            package_id=package_id.strip().lower(),
            version=version_part.lower(),
            artifact_name=normalize_artifact_name(package_id.strip(), artifact_name, extensions).lower(),
            platform_tag=(platform_tag or "").strip().lower() or None,
        )

    def as_latest(self) -> "ResolvedArtifactKey":
        return ResolvedArtifactKey(self.package_id, Constants.LATEST, self.artifact_name, self.platform_tag)


@dataclass(frozen=True, eq=False)
class AnalysisResult:
    """Everything derived from analyzing one assembly once."""
    package_id: str
    package_version: str
    platform_tag: Optional[str]
    artifact_name: str
    assembly_version: str
    artifact_path: str
    is_reference_assembly: bool
    assembly: AssemblyNode
    provenance: Optional[str] = None
    all_types: Tuple[TypeNode, ...] = ()
    namespaces: Tuple[str, ...] = ()
    namespace_counts: Dict[str, int] = field(default_factory=dict)
    references: Tuple[str, ...] = ()
    public_types_count: int = 0
    classes_count: int = 0
    static_classes_count: int = 0
    interfaces_count: int = 0
    enums_count: int = 0
    structs_count: int = 0
    delegates_count: int = 0

    @property
    def all_types_count(self) -> int:
        return len(self.all_types)

    @property
    def identity(self) -> Tuple[str, str, Optional[str]]:
        """(version, artifact name, platform tag) used for the per-package index."""
        return (self.package_version, self.artifact_name, self.platform_tag)

    @classmethod
    def build(
        cls,
        *,
        package_id: str,
        package_version: str,
        platform_tag: Optional[str],
        artifact_name: str,
        artifact_path: str,
        assembly: AssemblyNode,
        provenance: Optional[str] = None,
    ) -> "AnalysisResult":
        types = tuple(assembly.types)
        namespace_counts: Dict[str, int] = {}
        for t in types:
            ns = t.containing_namespace
            if ns:
                namespace_counts[ns] = namespace_counts.get(ns, 0) + 1
        return cls(
            package_id=package_id,
            package_version=package_version,
            platform_tag=platform_tag,
            artifact_name=artifact_name,
            assembly_version=assembly.version,
            artifact_path=artifact_path,
            is_reference_assembly=assembly.is_reference_assembly,
            assembly=assembly,
            provenance=provenance,
            all_types=types,
            namespaces=tuple(sorted(namespace_counts)),
            namespace_counts=namespace_counts,
            references=tuple(sorted(str(r) for r in assembly.references)),
            public_types_count=sum(1 for t in types if t.is_public),
            classes_count=sum(1 for t in types if t.kind is TypeKind.CLASS and not t.is_static),
            static_classes_count=sum(1 for t in types if t.kind is TypeKind.CLASS and t.is_static),
            interfaces_count=sum(1 for t in types if t.kind is TypeKind.INTERFACE),
            enums_count=sum(1 for t in types if t.kind is TypeKind.ENUM),
            structs_count=sum(1 for t in types if t.kind is TypeKind.STRUCT),
            delegates_count=sum(1 for t in types if t.kind is TypeKind.DELEGATE),
        )
