"""Plain-text rendering of tool results."""

from __future__ import annotations

from typing import List, Optional, Sequence

from analysis.invoker import AnalyzeAllOutcome, PackageArtifacts
from analysis.models import AnalysisResult, MemberKind, MemberNode, TypeKind, TypeNode, TypeRefNode
from analysis.query import MemberListing, TypeListing, base_chain, interfaces
from analysis.signatures import format_value
from constants import Constants
from errors import PackageNotFoundError
from registry.nuget.models import PackageSearchResult
from registry.nuget.package import ProvenanceClass
from versioning.models import PackageVersionCandidate
from versioning.selector import sort_candidates

SEPARATOR = "-" * 80


def _date(candidate: PackageVersionCandidate) -> str:
    return candidate.published.strftime("%Y-%m-%d") if candidate.published else "unknown"


def _count(value: Optional[int]) -> str:
    return f"{value:,}" if value is not None else "unknown"


def _type_name(node) -> str:
    return node.display_name if isinstance(node, (TypeNode, TypeRefNode)) else str(node)


def render_search(results: Sequence[PackageSearchResult]) -> str:
    if not results:
        return "No matching packages found"
    lines = [f"Found {len(results)} packages", ""]
    for hit in results:
        lines.append(f"- {hit.id} ({hit.version})")
        lines.append(f"  Description: {hit.description or ''}")
        lines.append(f"  Downloads: {_count(hit.total_downloads)}")
        lines.append(f"  Tags: {', '.join(hit.tags)}")
        lines.append("")
    return "\n".join(lines)


def render_package_details(
    package_id: str,
    candidates: Sequence[PackageVersionCandidate],
    download_count: Optional[int] = None,
    version_limit: int = Constants.VERSION_LIMIT,
) -> str:
    ordered = sort_candidates(candidates)
    if not ordered:
        # Every listed version failed to parse.
        raise PackageNotFoundError(package_id)
    latest = ordered[0]
    lines = [
        f"PackageId: {latest.id}",
        f"Latest version: {latest.version}",
        f"Authors: {latest.authors or ''}",
        f"Description: {latest.description or ''}",
        f"Project URL: {latest.project_url or ''}",
        f"License: {latest.license_expression or latest.license_url or ''}",
        f"Downloads: {_count(download_count)}",
        f"Published: {_date(latest)}",
        f"Tags: {', '.join(latest.tags)}",
    ]
    if latest.dependency_groups:
        lines.append("Dependencies:")
        for group in latest.dependency_groups:
            lines.append(f"  [{group.target_framework or 'all frameworks'}]")
            if group.dependencies:
                for dep in group.dependencies:
                    lines.append(f"    - {dep.id} {dep.version_range or ''}".rstrip())
            else:
                lines.append("    no dependencies")
    lines.append(f"All versions ({len(ordered)}):")
    for candidate in ordered[:version_limit]:
        lines.append(f"  {candidate.version} - published {_date(candidate)}")
    if len(ordered) > version_limit:
        lines.append(f"  ... and {len(ordered) - version_limit} more versions")
    return "\n".join(lines)


def _provenance_note(provenance: ProvenanceClass) -> Optional[str]:
    if provenance is ProvenanceClass.REFERENCE_ONLY:
        return "No lib assemblies found, only reference assemblies (ref/)"
    if provenance is ProvenanceClass.LEGACY_FRAMEWORK:
        return "Found .NET Framework reference assemblies"
    return None


def render_package_assemblies(artifacts: PackageArtifacts) -> str:
    lines = [f"Package Id: {artifacts.candidate.id}", f"Version: {artifacts.candidate.version}", ""]
    note = _provenance_note(artifacts.provenance)
    if note:
        lines.append(note)
    lines.append(f"Found {len(artifacts.groups)} target frameworks:")
    for group in artifacts.groups:
        lines.append(f"[{group.platform_tag}]")
        assemblies = group.assemblies()
        if not assemblies:
            lines.append("   (no assembly files)")
        for item in assemblies:
            lines.append(f"- {item.rsplit('/', 1)[-1]}")
        lines.append("")
    return "\n".join(lines)


def render_analysis(result: AnalysisResult) -> str:
    lines = [
        f"Target framework: {result.platform_tag or ''}",
        "Assembly analysis:",
        "",
        f"Assembly name: {result.artifact_name}",
        f"Version: {result.assembly_version}",
    ]
    if result.is_reference_assembly:
        lines.append("This is a reference assembly")
    lines += [
        "",
        "Type statistics:",
        f"  Total types: {result.all_types_count}",
        f"  Public types: {result.public_types_count}",
        f"  - Classes: {result.classes_count}",
        f"  - Static classes: {result.static_classes_count}",
        f"  - Interfaces: {result.interfaces_count}",
        f"  - Enums: {result.enums_count}",
        f"  - Structs: {result.structs_count}",
        f"  - Delegates: {result.delegates_count}",
        "",
        f"Namespaces ({len(result.namespaces)}):",
    ]
    for ns in result.namespaces[: Constants.NAMESPACE_LIMIT]:
        lines.append(f"   - {ns} ({result.namespace_counts.get(ns, 0)} types)")
    if len(result.namespaces) > Constants.NAMESPACE_LIMIT:
        lines.append(f"   ... and {len(result.namespaces) - Constants.NAMESPACE_LIMIT} more namespaces")
    lines.append(f"Referenced assemblies ({len(result.references)}):")
    for ref in result.references[: Constants.REFERENCE_LIMIT]:
        lines.append(f"   - {ref}")
    if len(result.references) > Constants.REFERENCE_LIMIT:
        lines.append(f"   ... and {len(result.references) - Constants.REFERENCE_LIMIT} more references")
    return "\n".join(lines)


def render_analyze_all(outcome: AnalyzeAllOutcome) -> str:
    lines = [f"Package Id: {outcome.candidate.id}", f"Version: {outcome.candidate.version}", ""]
    for result in outcome.results:
        lines.append(render_analysis(result))
        lines.append("======================")
    for path, message in outcome.failures:
        lines.append(f"{path}: {message}")
    if not outcome.results and not outcome.failures:
        lines.append("No assemblies found for the requested target framework")
        if outcome.skipped_tags:
            lines.append("Only these target frameworks are available:")
            lines.extend(f"- {tag}" for tag in outcome.skipped_tags)
    return "\n".join(lines)


def _comment(result: AnalysisResult, doc_id: Optional[str], indent: int) -> Optional[str]:
    provider = result.assembly.documentation
    return provider.comment_text(doc_id, indent) if provider is not None else None


def _modifiers(member: MemberNode) -> str:
    flags = []
    if member.is_const:
        flags.append("const")
    elif member.is_static:
        flags.append("static")
    # Abstract and override methods are also virtual in metadata.
    if member.is_abstract:
        flags.append("abstract")
    elif member.is_override:
        flags.extend(["sealed", "override"] if member.is_sealed else ["override"])
    elif member.is_virtual:
        flags.append("virtual")
    if member.is_readonly:
        flags.append("readonly")
    return " ".join(flags) + " " if flags else ""


def _parameters(member: MemberNode) -> str:
    parts = []
    for p in member.parameters:
        text = f"{p.modifier + ' ' if p.modifier else ''}{p.type_name} {p.name}"
        if p.has_default:
            text += f" = {format_value(p.default_value)}"
        parts.append(text)
    return ", ".join(parts)


def member_signature(member: MemberNode) -> str:
    access = member.accessibility.value
    if member.kind is MemberKind.CONSTRUCTOR:
        owner = member.declaring_type.name if member.declaring_type else member.name
        return f"{access} {owner}({_parameters(member)})"
    if member.kind is MemberKind.METHOD:
        generic = f"<{', '.join(member.generic_parameters)}>" if member.generic_parameters else ""
        return f"{access} {_modifiers(member)}{member.type_name} {member.name}{generic}({_parameters(member)})"
    if member.kind is MemberKind.PROPERTY:
        accessors = [a for a, present in (("get", member.has_getter), ("set", member.has_setter)) if present]
        accessor_text = f" {{ {'; '.join(accessors)}; }}" if accessors else ""
        name = f"this[{_parameters(member)}]" if member.is_indexer else member.name
        return f"{access} {_modifiers(member)}{member.type_name} {name}{accessor_text}"
    if member.kind is MemberKind.FIELD:
        value = f" = {format_value(member.constant_value)}" if member.has_constant else ""
        return f"{access} {_modifiers(member)}{member.type_name} {member.name}{value}"
    return f"{access} {_modifiers(member)}event {member.type_name} {member.name}"


def type_signature(node: TypeNode) -> str:
    flags = []
    if node.is_static:
        flags.append("static")
    else:
        if node.is_abstract and node.kind is TypeKind.CLASS:
            flags.append("abstract")
        if node.is_sealed:
            flags.append("sealed")
    modifiers = f" {' '.join(flags)}" if flags else ""
    bases = []
    if node.base_type is not None and node.kind is TypeKind.CLASS:
        bases.append(_type_name(node.base_type))
    bases.extend(_type_name(i).rsplit(".", 1)[-1] for i in node.interfaces)
    suffix = f" : {', '.join(bases)}" if bases else ""
    return f"{node.accessibility.value}{modifiers} {node.kind.value} {node.display_name}{suffix}"


def render_type_members(
    result: AnalysisResult,
    type_name: str,
    node: TypeNode,
    listing: MemberListing,
    include_inherited: bool = False,
    comment: bool = True,
) -> str:
    lines = [
        f"Assembly: {result.artifact_name}",
        f"Type: {type_name}",
        "",
        f"Found type: {node.display_name}",
        f"  Kind: {node.kind.value}",
        f"  Accessibility: {node.accessibility.value}",
    ]
    chain = base_chain(node)
    if chain:
        lines.append(f"  Base types: {' -> '.join(_type_name(b) for b in chain)}")
    implemented = interfaces(node, include_inherited)
    if implemented:
        lines.append(f"  Interfaces: {', '.join(_type_name(i) for i in implemented)}")
    lines.append("")
    if comment:
        text = _comment(result, node.doc_id, 2)
        if text:
            lines.append(text)
    lines += ["", "Members:", ""]

    sections = (
        ("Constructors", listing.constructors, "    ", ";"),
        ("Methods", listing.methods, "  ", ";"),
        ("Properties", listing.properties, "  ", ""),
        ("Fields", listing.fields, "  ", ";"),
        ("Events", listing.events, "  ", ";"),
    )
    for title, members, indent, terminator in sections:
        if not members:
            continue
        lines.append(f"{title} ({len(members)}):")
        for member in members:
            if comment:
                text = _comment(result, member.doc_id, 2)
                if text:
                    lines.append(text)
            lines.append(f"{indent}{member_signature(member)}{terminator}")
        lines.append("")

    if listing.total == 0:
        lines.append("No matching members found.")
    else:
        lines.append(f"Total: {listing.total} members")
    return "\n".join(lines)


def render_type_search(
    result: AnalysisResult,
    pattern: str,
    listing: TypeListing,
    comment: bool = True,
) -> str:
    lines: List[str] = [f"Assembly: {result.artifact_name}", f"Search pattern: {pattern}"]
    if not result.all_types:
        lines.append("Search failed, this assembly contains no types")
        return "\n".join(lines)
    if listing.total == 0:
        lines.append("No matching types found")
        return "\n".join(lines)
    shown = len(listing.types)
    header = f"Found {listing.total} matching types"
    if listing.truncated:
        header += f", showing the first {shown}"
    lines.append(header)
    for node in listing.types:
        if comment:
            text = _comment(result, node.doc_id, 2)
            if text:
                lines.append(text)
        lines.append(f"  {type_signature(node)};")
    lines.append(SEPARATOR)
    footer = f"Matched: {listing.total} types"
    if listing.truncated:
        footer += f", shown: {shown}"
    lines.append(footer)
    return "\n".join(lines)
