"""Tests for the solution manifest and its document codec."""

import threading

import pytest
from ezdb_core.errors import DuplicateUnitError, ManifestFormatError
from ezdb_solution.manifest import PROJECT_TYPE_GUID, SolutionConfig, SolutionManifest, previous_identifiers
from ezdb_solution.models import UnitKind

SALES_ID = "11111111-2222-3333-4444-555555555555"


def _manifest() -> SolutionManifest:
    manifest = SolutionManifest()
    manifest.register_unit("Acme.DAL.Sales", UnitKind.LIBRARY, "DAL/Sales/Acme.DAL.Sales.csproj", identifier=SALES_ID)
    manifest.register_unit("Acme.DAL.HR", UnitKind.LIBRARY, "DAL\\HR\\Acme.DAL.HR.csproj")
    manifest.register_unit("Acme.API", UnitKind.API, "API/Acme.API.csproj")
    return manifest


class TestRegisterUnit:
    def test_assigns_identifier(self):
        unit = SolutionManifest().register_unit("Acme.DAL.Sales", UnitKind.LIBRARY, "DAL/Sales/x.csproj")
        assert len(unit.identifier) == 36
        assert unit.identifier == unit.identifier.upper()

    def test_explicit_identifier_is_normalized(self):
        unit = SolutionManifest().register_unit(
            "Acme.DAL.Sales", UnitKind.LIBRARY, "x.csproj", identifier="{" + SALES_ID.lower() + "}"
        )
        assert unit.identifier == SALES_ID

    def test_invalid_identifier(self):
        with pytest.raises(ValueError, match="Invalid unit identifier"):
            SolutionManifest().register_unit("A", UnitKind.LIBRARY, "x.csproj", identifier="not-a-guid")

    def test_duplicate_name_case_insensitive(self):
        manifest = SolutionManifest()
        manifest.register_unit("Acme.DAL.Sales", UnitKind.LIBRARY, "a.csproj")
        with pytest.raises(DuplicateUnitError) as exc_info:
            manifest.register_unit("acme.dal.SALES", UnitKind.LIBRARY, "b.csproj")
        assert exc_info.value.name == "acme.dal.SALES"
        assert len(manifest) == 1

    def test_backslashes_normalized(self):
        manifest = _manifest()
        assert manifest.get("Acme.DAL.HR").relative_path == "DAL/HR/Acme.DAL.HR.csproj"

    def test_known_identifiers_reused(self):
        manifest = SolutionManifest(known_identifiers={"ACME.DAL.SALES": SALES_ID})
        unit = manifest.register_unit("Acme.DAL.Sales", UnitKind.LIBRARY, "a.csproj")
        assert unit.identifier == SALES_ID

    def test_insertion_order_preserved(self):
        assert [u.name for u in _manifest()] == ["Acme.DAL.Sales", "Acme.DAL.HR", "Acme.API"]

    def test_library_units(self):
        assert [u.name for u in _manifest().library_units()] == ["Acme.DAL.Sales", "Acme.DAL.HR"]

    def test_contains_and_get(self):
        manifest = _manifest()
        assert "acme.api" in manifest
        assert "Acme.DAL.Ops" not in manifest
        assert 42 not in manifest
        assert manifest.get("ACME.API").kind is UnitKind.API

    def test_concurrent_registration_keeps_names_unique(self):
        manifest = SolutionManifest()
        errors = []

        def _register():
            try:
                manifest.register_unit("Acme.DAL.Sales", UnitKind.LIBRARY, "a.csproj")
            except DuplicateUnitError as exc:
                errors.append(exc)

        threads = [threading.Thread(target=_register) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(manifest) == 1
        assert len(errors) == 7

    def test_length_counts_units_while_registering(self):
        manifest = SolutionManifest()
        sizes = []

        def _register(index):
            manifest.register_unit(f"Acme.DAL.Db{index}", UnitKind.LIBRARY, f"Db{index}/Db{index}.csproj")
            sizes.append(len(manifest))

        threads = [threading.Thread(target=_register, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(manifest) == 8
        assert max(sizes) == 8
        assert all(1 <= size <= 8 for size in sizes)


class TestToDocument:
    def test_empty_document(self):
        assert SolutionManifest().to_document() == (
            "Microsoft Visual Studio Solution File, Format Version 12.00\n"
            "# Visual Studio Version 17\n"
            "VisualStudioVersion = 17.0.31903.59\n"
            "MinimumVisualStudioVersion = 10.0.40219.1\n"
            "Global\n"
            "\tGlobalSection(SolutionConfigurationPlatforms) = preSolution\n"
            "\t\tDebug|Any CPU = Debug|Any CPU\n"
            "\t\tRelease|Any CPU = Release|Any CPU\n"
            "\tEndGlobalSection\n"
            "\tGlobalSection(SolutionProperties) = preSolution\n"
            "\t\tHideSolutionNode = FALSE\n"
            "\tEndGlobalSection\n"
            "EndGlobal\n"
        )

    def test_project_declarations_precede_global(self):
        lines = _manifest().to_document().splitlines()
        global_index = lines.index("Global")
        assert lines[4] == (
            f'Project("{{{PROJECT_TYPE_GUID}}}") = "Acme.DAL.Sales", '
            f'"DAL/Sales/Acme.DAL.Sales.csproj", "{{{SALES_ID}}}"'
        )
        assert lines[5] == "EndProject"
        assert lines[8].startswith(f'Project("{{{PROJECT_TYPE_GUID}}}") = "Acme.API", "API/Acme.API.csproj", ')
        assert global_index == 10

    def test_configuration_lines(self):
        lines = _manifest().to_document().splitlines()
        start = lines.index("\tGlobalSection(ProjectConfigurationPlatforms) = postSolution")
        assert lines[start - 1] == "\tEndGlobalSection"
        assert lines[start + 1 : start + 5] == [
            f"\t\t{{{SALES_ID}}}.Debug|Any CPU.ActiveCfg = Debug|Any CPU",
            f"\t\t{{{SALES_ID}}}.Debug|Any CPU.Build.0 = Debug|Any CPU",
            f"\t\t{{{SALES_ID}}}.Release|Any CPU.ActiveCfg = Release|Any CPU",
            f"\t\t{{{SALES_ID}}}.Release|Any CPU.Build.0 = Release|Any CPU",
        ]
        assert lines[start + 13] == "\tEndGlobalSection"
        assert lines[start + 14] == "\tGlobalSection(SolutionProperties) = preSolution"

    def test_serialization_is_stable(self):
        manifest = _manifest()
        assert manifest.to_document() == manifest.to_document()

    def test_custom_configurations(self):
        manifest = SolutionManifest(SolutionConfig(configurations=["Release"], platform="x64"))
        unit = manifest.register_unit("A", UnitKind.LIBRARY, "a.csproj")
        document = manifest.to_document()
        assert "\t\tRelease|x64 = Release|x64" in document
        assert "Debug" not in document
        assert f"\t\t{{{unit.identifier}}}.Release|x64.Build.0 = Release|x64" in document


class TestParse:
    def test_round_trip(self):
        original = _manifest()
        parsed = SolutionManifest.parse(original.to_document())

        assert [(u.name, u.relative_path, u.identifier) for u in parsed] == [
            (u.name, u.relative_path, u.identifier) for u in original
        ]
        assert parsed.to_document() == original.to_document()

    def test_kind_inferred_from_path(self):
        parsed = SolutionManifest.parse(_manifest().to_document())
        assert parsed.get("Acme.API").kind is UnitKind.API
        assert parsed.get("Acme.DAL.Sales").kind is UnitKind.LIBRARY

    def test_reads_configuration_block(self):
        document = SolutionManifest(SolutionConfig(configurations=["Release"], platform="x64")).to_document()
        parsed = SolutionManifest.parse(document)
        assert parsed.config.configurations == ["Release"]
        assert parsed.config.platform == "x64"
        assert parsed.config.visual_studio_version == "17.0.31903.59"

    def test_tolerates_bom_and_crlf(self):
        document = "\ufeff" + _manifest().to_document().replace("\n", "\r\n")
        assert len(SolutionManifest.parse(document)) == 3

    def test_rejects_non_solution(self):
        with pytest.raises(ManifestFormatError, match="not a solution file"):
            SolutionManifest.parse("<Project Sdk='Microsoft.NET.Sdk' />")

    def test_rejects_malformed_declaration(self):
        document = SolutionManifest().to_document().replace("Global\n", 'Project("{X}") = "broken"\nEndProject\nGlobal\n', 1)
        with pytest.raises(ManifestFormatError, match="malformed project declaration"):
            SolutionManifest.parse(document)

    def test_rejects_missing_end_project(self):
        document = _manifest().to_document().replace("EndProject\n", "", 1)
        with pytest.raises(ManifestFormatError, match="missing EndProject"):
            SolutionManifest.parse(document)

    def test_rejects_duplicate_units(self):
        lines = _manifest().to_document().splitlines()
        document = "\n".join(lines[:6] + lines[4:6] + lines[6:])
        with pytest.raises(ManifestFormatError, match="already registered"):
            SolutionManifest.parse(document)


class TestPersistence:
    def test_save_and_load(self, tmp_path):
        path = tmp_path / "src" / "db01.sln"
        original = _manifest()
        original.save(path)

        assert path.read_bytes().count(b"\r\n") == 0
        loaded = SolutionManifest.load(path)
        assert [u.identifier for u in loaded] == [u.identifier for u in original]

    def test_previous_identifiers(self, tmp_path):
        path = tmp_path / "db01.sln"
        _manifest().save(path)
        assert previous_identifiers(path)["Acme.DAL.Sales"] == SALES_ID

    def test_previous_identifiers_missing_file(self, tmp_path):
        assert previous_identifiers(tmp_path / "none.sln") == {}

    def test_previous_identifiers_unreadable_file(self, tmp_path):
        path = tmp_path / "bad.sln"
        path.write_text("not a solution", encoding="utf-8")
        assert previous_identifiers(path) == {}
