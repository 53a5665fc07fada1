"""Tests for package layout grouping, extraction and artifact location."""

import os
from unittest.mock import patch

import pytest

from analysis.locator import locate
from errors import NoArtifactFoundError, NoPlatformGroupsError
from registry.nuget.package import (
    METADATA_MARKER,
    PackageReader,
    ProvenanceClass,
    extract_package,
    is_legacy_framework_package,
    package_directory,
    select_platform_groups,
    short_folder_name,
)
from builders import NEWTONSOFT_FILES, write_nupkg


class TestShortFolderName:
    """Test framework folder normalization."""

    @pytest.mark.parametrize("folder,expected", [
        ("netstandard2.0", "netstandard2.0"),
        (".NETStandard2.0", "netstandard2.0"),
        (".NETFramework4.5", "net45"),
        ("NET8.0", "net8.0"),
    ])
    def test_lib_folders(self, folder, expected):
        """Test long and mixed-case framework names."""
        assert short_folder_name(folder) == expected

    def test_legacy_folder(self):
        """Test build/.NETFramework/v4.7.2 becomes net472."""
        assert short_folder_name("v4.7.2", legacy=True) == "net472"


class TestPackageReader:
    """Test grouping package files by target framework."""

    def test_groups_lib_items_in_framework_order(self):
        """Test groups are ordered by framework family and version."""
        reader = PackageReader(NEWTONSOFT_FILES)
        tags = [g.platform_tag for g in reader.get_lib_items()]
        assert tags == ["net20", "net45", "netstandard2.0"]

    def test_assemblies_filter_by_extension(self):
        """Test the xml doc file is not listed as an assembly."""
        reader = PackageReader(NEWTONSOFT_FILES)
        group = reader.get_lib_items()[-1]
        assert group.assemblies() == ["lib/netstandard2.0/Newtonsoft.Json.dll"]

    def test_files_directly_under_lib_are_net(self):
        """Test lib/Foo.dll targets the unversioned framework."""
        reader = PackageReader(["lib/Foo.dll"])
        assert reader.get_lib_items()[0].platform_tag == "net"

    def test_backslashes_are_normalized(self):
        """Test Windows separators in archive entries."""
        reader = PackageReader(["lib\\net45\\Foo.dll"])
        assert reader.get_lib_items()[0].items == ("lib/net45/Foo.dll",)


class TestSelectPlatformGroups:
    """Test the lib, ref and legacy framework tiers."""

    def test_lib_tier_wins(self):
        """Test normal provenance when lib groups exist."""
        groups, provenance = select_platform_groups(PackageReader(NEWTONSOFT_FILES), "Newtonsoft.Json")
        assert provenance is ProvenanceClass.NORMAL
        assert len(groups) == 3

    def test_falls_back_to_reference_tier(self):
        """Test zero lib groups and two ref groups yield reference-only provenance."""
        reader = PackageReader(["ref/net6.0/Pkg.dll", "ref/net8.0/Pkg.dll"])
        groups, provenance = select_platform_groups(reader, "Pkg")
        assert provenance is ProvenanceClass.REFERENCE_ONLY
        assert [g.platform_tag for g in groups] == ["net6.0", "net8.0"]

        located = locate("Pkg", "1.0.0", groups, provenance, None, packages_root="/root")
        assert located.provenance is ProvenanceClass.REFERENCE_ONLY
        assert located.relative_path == "ref/net6.0/Pkg.dll"

    def test_legacy_tier_only_for_matching_packages(self):
        """Test build/.NETFramework is searched only for the reference assembly family."""
        files = ["build/.NETFramework/v4.7.2/mscorlib.dll"]
        groups, provenance = select_platform_groups(
            PackageReader(files), "Microsoft.NETFramework.ReferenceAssemblies.net472"
        )
        assert provenance is ProvenanceClass.LEGACY_FRAMEWORK
        assert groups[0].platform_tag == "net472"
        with pytest.raises(NoPlatformGroupsError):
            select_platform_groups(PackageReader(files), "Some.Other.Package")

    def test_legacy_policy_is_pluggable(self):
        """Test a custom predicate replaces the default family check."""
        files = ["build/.NETFramework/v4.8/System.dll"]
        groups, provenance = select_platform_groups(PackageReader(files), "My.Refs", lambda pkg: True)
        assert provenance is ProvenanceClass.LEGACY_FRAMEWORK
        assert is_legacy_framework_package("microsoft.netframework.referenceassemblies")

    def test_no_groups_raises(self):
        """Test a content-only package."""
        with pytest.raises(NoPlatformGroupsError):
            select_platform_groups(PackageReader(["content/readme.txt"]), "Pkg")


class TestLocate:
    """Test matching an artifact name within the selected groups."""

    def _groups(self):
        return select_platform_groups(PackageReader(NEWTONSOFT_FILES), "Newtonsoft.Json")

    def test_platform_tag_selects_group(self):
        """Test the requested framework group is used and the path is under the packages root."""
        groups, provenance = self._groups()
        located = locate("Newtonsoft.Json", "13.0.3", groups, provenance, "newtonsoft.json", "netstandard2.0",
                         packages_root="/pkgs")
        assert located.platform_tag == "netstandard2.0"
        assert located.path == os.path.join("/pkgs", "newtonsoft.json", "13.0.3", "lib", "netstandard2.0",
                                            "Newtonsoft.Json.dll")
        assert located.doc_path.endswith("Newtonsoft.Json.xml")

    def test_first_group_without_tag(self):
        """Test the first group wins when no framework is requested."""
        groups, provenance = self._groups()
        assert locate("Newtonsoft.Json", "13.0.3", groups, provenance, None).platform_tag == "net20"

    def test_unknown_tag_lists_skipped_groups(self):
        """Test the error names the frameworks that were skipped."""
        groups, provenance = self._groups()
        with pytest.raises(NoArtifactFoundError) as exc:
            locate("Newtonsoft.Json", "13.0.3", groups, provenance, None, "net8.0")
        assert exc.value.other_tags == ["net20", "net45", "netstandard2.0"]
        assert "- net45" in str(exc.value)

    def test_legacy_family_ignores_tag(self):
        """Test the tag filter is bypassed for the reference assembly family."""
        pkg = "Microsoft.NETFramework.ReferenceAssemblies.net472"
        reader = PackageReader(["build/.NETFramework/v4.7.2/System.Xml.dll"])
        groups, provenance = select_platform_groups(reader, pkg)
        located = locate(pkg, "1.0.3", groups, provenance, "System.Xml", "net48")
        assert located.platform_tag == "net472"


class TestExtractPackage:
    """Test materializing a .nupkg on disk."""

    def test_extracts_content_and_skips_packaging_entries(self, tmp_path):
        """Test OPC entries are dropped and the archive is copied next to the content."""
        nupkg = write_nupkg(tmp_path / "pkg.nupkg", {
            "[Content_Types].xml": b"<Types/>",
            "_rels/.rels": b"<Relationships/>",
            "package/services/metadata/core-properties/abc.psmdcp": b"<x/>",
            "Pkg.nuspec": b"<package/>",
            "lib/netstandard2.0/Pkg.dll": b"MZ",
        })
        destination = package_directory(str(tmp_path / "root"), "Pkg", "1.0.0")
        files = extract_package(nupkg, destination, archive_name="pkg.1.0.0.nupkg")
        assert sorted(files) == ["Pkg.nuspec", "lib/netstandard2.0/Pkg.dll"]
        assert os.path.isfile(os.path.join(destination, "lib", "netstandard2.0", "Pkg.dll"))
        assert os.path.isfile(os.path.join(destination, "pkg.1.0.0.nupkg"))
        assert not os.path.exists(os.path.join(destination, "_rels"))

    def test_entries_outside_root_are_skipped(self, tmp_path):
        """Test path traversal entries never escape the destination."""
        nupkg = write_nupkg(tmp_path / "evil.nupkg", {"../escape.txt": b"x", "lib/net45/A.dll": b"MZ"})
        destination = str(tmp_path / "root" / "evil" / "1.0.0")
        files = extract_package(nupkg, destination)
        assert files == ["lib/net45/A.dll"]
        assert not (tmp_path / "root" / "evil" / "escape.txt").exists()

    def test_reader_from_directory(self, tmp_path):
        """Test listing an extracted package folder."""
        pkg_dir = tmp_path / "pkg"
        (pkg_dir / "lib" / "net45").mkdir(parents=True)
        (pkg_dir / "lib" / "net45" / "A.dll").write_bytes(b"MZ")
        reader = PackageReader.from_directory(str(pkg_dir))
        assert reader.files == ("lib/net45/A.dll",)

    def test_completed_package_is_never_replaced(self, tmp_path):
        """Test a second extraction reuses a marked destination instead of swapping it."""
        nupkg = write_nupkg(tmp_path / "pkg.nupkg", {"lib/net45/A.dll": b"MZ"})
        destination = str(tmp_path / "root" / "pkg" / "1.0.0")
        extract_package(nupkg, destination, marker_text="{}")
        live_dll = os.path.join(destination, "lib", "net45", "A.dll")

        with patch("registry.nuget.package.os.replace") as mock_replace:
            files = extract_package(nupkg, destination, marker_text="{}")

        mock_replace.assert_not_called()
        assert os.path.isfile(live_dll)
        assert "lib/net45/A.dll" in files
        assert METADATA_MARKER not in files
        assert not [n for n in os.listdir(os.path.dirname(destination)) if n.startswith(".extract-")]

    def test_marker_is_part_of_the_swap(self, tmp_path):
        """Test the marker exists as soon as the destination does."""
        nupkg = write_nupkg(tmp_path / "pkg.nupkg", {"lib/net45/A.dll": b"MZ"})
        destination = str(tmp_path / "root" / "pkg" / "1.0.0")
        seen = []

        def spy(src, dst):
            seen.append(os.path.isfile(os.path.join(src, METADATA_MARKER)))
            os.rename(src, dst)

        with patch("registry.nuget.package.os.replace", side_effect=spy):
            extract_package(nupkg, destination, marker_text='{"version": 2}')
        assert seen == [True]

    def test_unmarked_destination_is_replaced(self, tmp_path):
        """Test leftovers of an interrupted extraction are cleared."""
        destination = tmp_path / "root" / "pkg" / "1.0.0"
        (destination / "lib").mkdir(parents=True)
        (destination / "lib" / "partial.tmp").write_bytes(b"")
        nupkg = write_nupkg(tmp_path / "pkg.nupkg", {"lib/net45/A.dll": b"MZ"})
        extract_package(nupkg, str(destination), marker_text="{}")
        assert not (destination / "lib" / "partial.tmp").exists()
        assert (destination / "lib" / "net45" / "A.dll").is_file()
