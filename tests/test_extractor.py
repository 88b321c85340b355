"""Tests for metadata extraction and normalization."""
from __future__ import annotations

import textwrap
from typing import TYPE_CHECKING

import pytest
from bmad_core.errors import (
    AgentDefinitionError,
    MissingConfigurationError,
    StructuralValidationError,
)
from bmad_discovery.extractor import (
    NO_CONFIGURATION,
    MetadataExtractor,
    generate_agent_name,
    normalize_commands,
    normalize_dependencies,
)
from bmad_discovery.types import AgentCommand, OtherDependency, Scope, ScopeContext

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def core_scope(bmad_root: Path) -> ScopeContext:
    return ScopeContext(Scope.CORE, bmad_root / "bmad-core")


@pytest.fixture
def extractor(bmad_root: Path) -> MetadataExtractor:
    return MetadataExtractor(bmad_root)


# ── Normalization ────────────────────────────────────────────────────


class TestNormalizeCommands:
    """The three command encodings collapse to the same shape."""

    def test_encodings_are_equivalent(self) -> None:
        as_strings = normalize_commands(["help", "create-prd"])
        as_objects = normalize_commands([{"help": None}, {"create-prd": None}])
        as_mapping = normalize_commands({"help": None, "create-prd": None})

        expected = [AgentCommand("help"), AgentCommand("create-prd")]
        assert as_strings == expected
        assert as_objects == expected
        assert as_mapping == expected

    def test_descriptions_from_objects_and_mapping(self) -> None:
        as_objects = normalize_commands([{"help": "Show help"}, {"exit": "Leave"}])
        as_mapping = normalize_commands({"help": "Show help", "exit": "Leave"})

        assert as_objects == as_mapping == [
            AgentCommand("help", "Show help"),
            AgentCommand("exit", "Leave"),
        ]

    def test_non_string_description_is_dropped(self) -> None:
        commands = normalize_commands({"task": {"nested": True}})

        assert commands == [AgentCommand("task", None)]

    def test_unrecognized_items_have_empty_names(self) -> None:
        commands = normalize_commands([None, ["nested"], {}])

        assert [c.name for c in commands] == ["", "", ""]

    def test_missing_commands(self) -> None:
        assert normalize_commands(None) == []
        assert normalize_commands(42) == []


class TestNormalizeDependencies:
    def test_encodings_are_equivalent(self) -> None:
        as_strings = normalize_dependencies({"tasks": ["create-doc", "shard-doc"]})
        as_objects = normalize_dependencies({"tasks": [{"create-doc": None}, {"shard-doc": "x"}]})
        as_mapping = normalize_dependencies({"tasks": {"create-doc": None, "shard-doc": None}})

        assert as_strings.tasks == ["create-doc", "shard-doc"]
        assert as_strings == as_objects == as_mapping

    def test_single_string_value(self) -> None:
        deps = normalize_dependencies({"templates": "prd-tmpl.yaml"})

        assert deps.templates == ["prd-tmpl.yaml"]

    def test_unknown_kinds_go_to_other(self) -> None:
        deps = normalize_dependencies({"workflows": ["greenfield"], "tasks": ["a"]})

        assert deps.tasks == ["a"]
        assert deps.other == [OtherDependency("workflows", "greenfield")]
        assert list(deps.items()) == [("tasks", "a")]

    def test_non_mapping_is_empty(self) -> None:
        deps = normalize_dependencies(["tasks"])

        assert len(deps) == 0
        assert deps.other == []

    def test_items_follow_kind_order(self) -> None:
        deps = normalize_dependencies({
            "utils": ["u"],
            "tasks": ["t1", "t2"],
            "data": ["d"],
        })

        assert list(deps.items()) == [
            ("tasks", "t1"),
            ("tasks", "t2"),
            ("data", "d"),
            ("utils", "u"),
        ]


class TestGenerateAgentName:
    @pytest.mark.parametrize(
        ("stem", "expected"),
        [
            ("pm", "Product Manager"),
            ("ux-expert", "UX Expert"),
            ("game-sm", "Game Scrum Master"),
            ("data-engineer", "Data Engineer"),
        ],
    )
    def test_names(self, stem: str, expected: str) -> None:
        assert generate_agent_name(stem) == expected


# ── Extraction ───────────────────────────────────────────────────────


class TestExtract:
    def test_extracts_full_record(
        self, bmad_root: Path, core_scope: ScopeContext, extractor: MetadataExtractor, make_agent
    ) -> None:
        path = make_agent(
            bmad_root / "bmad-core" / "agents", "pm", dependencies={"tasks": ["create-doc"]}
        )

        result = extractor.extract_file(path, core_scope)

        record = result.record
        assert record is not None
        assert result.errors == []
        assert record.id == "pm"
        assert record.name == "Pm"
        assert record.title == "Product Manager"
        assert record.icon == "📋"
        assert record.file_path == path
        assert record.relative_path == "bmad-core/agents/pm.md"
        assert record.file_name == "pm.md"
        assert record.scope is Scope.CORE
        assert record.extension_id is None
        assert record.when_to_use == "Use for PRDs and product strategy"
        assert record.persona.role == "Investigative Strategist"
        assert record.persona.principles == ["Understand the why", "Champion the user"]
        assert [c.name for c in record.commands] == ["help", "create-prd"]
        assert record.dependencies.tasks == ["create-doc"]
        assert record.resolved_dependencies == {}
        assert record.is_valid is True
        assert record.raw_content == path.read_text(encoding="utf-8")
        assert record.content.startswith("# pm")

    def test_defaults_from_filename(
        self, bmad_root: Path, core_scope: ScopeContext, extractor: MetadataExtractor
    ) -> None:
        path = bmad_root / "bmad-core" / "agents" / "ux-expert.md"
        path.write_text(
            textwrap.dedent("""\
                ---
                agent:
                  whenToUse: design reviews
                persona:
                  role: Designer
                ---
                Body
            """),
            encoding="utf-8",
        )

        record = extractor.extract_file(path, core_scope).record

        assert record is not None
        assert record.id == "ux-expert"
        assert record.name == "UX Expert"
        assert record.title == "Assistant"
        assert record.icon == "🤖"
        assert record.is_valid is True

    def test_nested_dependencies_in_agent_section(
        self, bmad_root: Path, core_scope: ScopeContext, extractor: MetadataExtractor
    ) -> None:
        path = bmad_root / "bmad-core" / "agents" / "sm.md"
        path.write_text(
            "---\nagent:\n  id: sm\n  dependencies:\n    checklists: story-dod\n"
            "persona:\n  role: Scrum Master\n---\n",
            encoding="utf-8",
        )

        record = extractor.extract_file(path, core_scope).record

        assert record is not None
        assert record.dependencies.checklists == ["story-dod"]

    def test_no_configuration_returns_none(
        self, bmad_root: Path, core_scope: ScopeContext, extractor: MetadataExtractor
    ) -> None:
        path = bmad_root / "bmad-core" / "agents" / "notes.md"
        path.write_text("# Notes\n\nNothing to configure.\n", encoding="utf-8")

        result = extractor.extract_file(path, core_scope)

        assert result.record is None
        assert len(result.errors) == 1
        assert result.errors[0].file_path == str(path)
        assert result.errors[0].message == NO_CONFIGURATION

    def test_malformed_yaml_returns_none(
        self, bmad_root: Path, core_scope: ScopeContext, extractor: MetadataExtractor
    ) -> None:
        path = bmad_root / "bmad-core" / "agents" / "broken.md"
        path.write_text("---\nagent: [oops\n---\n", encoding="utf-8")

        result = extractor.extract_file(path, core_scope)

        assert result.record is None
        assert [e.message for e in result.errors] == [NO_CONFIGURATION]

    def test_unreadable_file_is_reported(
        self, bmad_root: Path, core_scope: ScopeContext, extractor: MetadataExtractor
    ) -> None:
        path = bmad_root / "bmad-core" / "agents" / "binary.md"
        path.write_bytes(b"\xff\xfe\x00garbage")

        result = extractor.extract_file(path, core_scope)

        assert result.record is None
        assert result.errors[0].message.startswith("Failed to extract metadata:")

    def test_missing_file_is_reported(
        self, bmad_root: Path, core_scope: ScopeContext, extractor: MetadataExtractor
    ) -> None:
        result = extractor.extract_file(bmad_root / "bmad-core" / "agents" / "gone.md", core_scope)

        assert result.record is None
        assert result.errors[0].message.startswith("Failed to extract metadata:")

    def test_unexpected_failure_is_contained(
        self,
        bmad_root: Path,
        core_scope: ScopeContext,
        extractor: MetadataExtractor,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        def _boom(text: str) -> None:
            raise RuntimeError("parser exploded")

        monkeypatch.setattr("bmad_discovery.extractor.parse_agent_document", _boom)
        path = bmad_root / "bmad-core" / "agents" / "x.md"
        path.write_text("---\nagent:\n  id: x\n---\n", encoding="utf-8")

        result = extractor.extract_file(path, core_scope)

        assert result.record is None
        assert result.errors[0].message == "Failed to extract metadata: parser exploded"

    def test_structurally_invalid_record_is_returned(
        self, bmad_root: Path, core_scope: ScopeContext, extractor: MetadataExtractor, make_agent
    ) -> None:
        path = make_agent(bmad_root / "bmad-core" / "agents", "po", role=None)

        result = extractor.extract_file(path, core_scope)

        assert result.record is not None
        assert result.record.is_valid is False
        assert result.record.validation_errors == ["Missing persona role"]
        assert [e.message for e in result.errors] == ["Missing persona role"]

    def test_extension_scope_is_recorded(
        self, bmad_root: Path, extractor: MetadataExtractor, make_agent
    ) -> None:
        pack = bmad_root / "expansion-packs" / "game-dev"
        path = make_agent(pack / "agents", "game-designer")
        scope = ScopeContext(Scope.EXTENSION, pack, "game-dev")

        record = extractor.extract_file(path, scope).record

        assert record is not None
        assert record.scope is Scope.EXTENSION
        assert record.extension_id == "game-dev"
        assert record.relative_path == "expansion-packs/game-dev/agents/game-designer.md"

    def test_byte_order_mark_is_ignored(
        self, bmad_root: Path, core_scope: ScopeContext, extractor: MetadataExtractor, make_agent
    ) -> None:
        path = make_agent(bmad_root / "bmad-core" / "agents", "pm")
        path.write_bytes(b"\xef\xbb\xbf" + path.read_bytes())

        result = extractor.extract_file(path, core_scope)

        assert result.errors == []
        assert result.record is not None
        assert result.record.id == "pm"
        assert result.record.raw_content.startswith("---")


class TestEncodingEquivalence:
    """Front matter and fenced encodings of the same configuration extract identically."""

    def test_same_record_except_raw_content(
        self, bmad_root: Path, core_scope: ScopeContext, extractor: MetadataExtractor, make_agent
    ) -> None:
        deps = {"tasks": ["create-doc"], "templates": ["prd-tmpl"], "workflows": ["brownfield"]}
        front = make_agent(bmad_root / "a" / "agents", "pm", dependencies=deps)
        fenced = make_agent(bmad_root / "b" / "agents", "pm", dependencies=deps, fenced=True)

        a = extractor.extract_file(front, core_scope).record
        b = extractor.extract_file(fenced, core_scope).record

        assert a is not None
        assert b is not None
        assert a.raw_content != b.raw_content

        ignored = {"filePath", "relativePath", "discoveredAt"}
        a_dict = {k: v for k, v in a.to_dict(include_content=True).items() if k not in ignored}
        b_dict = {k: v for k, v in b.to_dict(include_content=True).items() if k not in ignored}
        a_dict.pop("rawContent")
        b_dict.pop("rawContent")
        assert a_dict == b_dict
        assert a.content == b.content


class TestRaiseForErrors:
    def test_missing_configuration(
        self, bmad_root: Path, core_scope: ScopeContext, extractor: MetadataExtractor
    ) -> None:
        path = bmad_root / "bmad-core" / "agents" / "notes.md"
        path.write_text("plain text\n", encoding="utf-8")

        result = extractor.extract_file(path, core_scope)

        assert not result.ok
        with pytest.raises(MissingConfigurationError, match="notes.md"):
            result.raise_for_errors()

    def test_unreadable_file(
        self, bmad_root: Path, core_scope: ScopeContext, extractor: MetadataExtractor
    ) -> None:
        result = extractor.extract_file(bmad_root / "bmad-core" / "agents" / "gone.md", core_scope)

        with pytest.raises(AgentDefinitionError, match="Failed to extract metadata"):
            result.raise_for_errors()

    def test_invalid_record(
        self, bmad_root: Path, core_scope: ScopeContext, extractor: MetadataExtractor, make_agent
    ) -> None:
        path = make_agent(bmad_root / "bmad-core" / "agents", "po", role=None)

        result = extractor.extract_file(path, core_scope)

        with pytest.raises(StructuralValidationError, match="Missing persona role"):
            result.raise_for_errors()

    def test_valid_record(
        self, bmad_root: Path, core_scope: ScopeContext, extractor: MetadataExtractor, make_agent
    ) -> None:
        path = make_agent(bmad_root / "bmad-core" / "agents", "pm")

        result = extractor.extract_file(path, core_scope)

        assert result.ok
        result.raise_for_errors()
