"""Builds AgentRecords from unit files."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from bmad_core.errors import AgentDefinitionError, MissingConfigurationError

from bmad_discovery.parser import parse_agent_document
from bmad_discovery.types import (
    DEPENDENCY_KINDS,
    AgentCommand,
    AgentDependencies,
    AgentRecord,
    OtherDependency,
    Persona,
    ValidationError,
)
from bmad_discovery.validator import AgentValidator

if TYPE_CHECKING:
    from pathlib import Path

    from bmad_discovery.parser import ParsedDocument
    from bmad_discovery.types import ScopeContext

logger = logging.getLogger("bmad.discovery.extractor")

NO_CONFIGURATION = "No valid configuration found"

DEFAULT_TITLE = "Assistant"
DEFAULT_ICON = "🤖"

# Display names for the well-known agent file stems.
_KNOWN_AGENT_NAMES: dict[str, str] = {
    "pm": "Product Manager",
    "architect": "Architect",
    "dev": "Developer",
    "qa": "QA Engineer",
    "sm": "Scrum Master",
    "po": "Product Owner",
    "analyst": "Business Analyst",
    "ux-expert": "UX Expert",
    "game-developer": "Game Developer",
    "game-designer": "Game Designer",
    "game-sm": "Game Scrum Master",
}


@dataclass(frozen=True, slots=True)
class ExtractionResult:
    """Outcome of extracting one file.

    ``record`` is None when the file had no usable configuration.
    ``errors`` holds every ValidationError the caller should add to
    the session; the extractor itself never touches shared state.
    """

    file_path: Path
    record: AgentRecord | None
    errors: list[ValidationError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.record is not None and self.record.is_valid

    def raise_for_errors(self) -> None:
        """Raise the AgentDefinitionError matching this result, if it failed.

        Raises:
            MissingConfigurationError: If the file had no configuration block.
            AgentDefinitionError: If the file could not be read or extracted.
            StructuralValidationError: If the record failed validation.
        """
        if self.record is not None:
            self.record.raise_for_errors()
            return
        if not self.errors:
            return
        message = self.errors[0].message
        if message == NO_CONFIGURATION:
            raise MissingConfigurationError(f"{self.file_path}: {message}")
        raise AgentDefinitionError(f"{self.file_path}: {message}")


def generate_agent_name(stem: str) -> str:
    """Human readable name for an agent file stem (``ux-expert`` -> ``UX Expert``)."""
    known = _KNOWN_AGENT_NAMES.get(stem)
    if known:
        return known
    return " ".join(word[:1].upper() + word[1:] for word in stem.split("-"))


# ── Normalization ────────────────────────────────────────────────────

def _decode_entries(value: Any) -> list[tuple[str, Any]]:
    """Flatten the accepted list encodings into ``(name, payload)`` pairs.

    Accepted shapes:
      * a single string                 -> one entry, no payload
      * a list of strings               -> one entry per string
      * a list of single-key mappings   -> key is the name, value the payload
      * a mapping                       -> one entry per key

    Items of any other type decode to an empty name.
    """
    if value is None:
        return []
    if isinstance(value, str):
        return [(value.strip(), None)]
    if isinstance(value, dict):
        return [(str(k).strip(), v) for k, v in value.items()]
    if not isinstance(value, list):
        return []

    entries: list[tuple[str, Any]] = []
    for item in value:
        if isinstance(item, dict) and item:
            key, payload = next(iter(item.items()))
            entries.append((str(key).strip(), payload))
        elif isinstance(item, str | int | float):
            entries.append((str(item).strip(), None))
        else:
            entries.append(("", None))
    return entries


def normalize_commands(value: Any) -> list[AgentCommand]:
    return [
        AgentCommand(
            name=name,
            description=payload.strip() if isinstance(payload, str) else None,
        )
        for name, payload in _decode_entries(value)
    ]


def normalize_dependencies(value: Any) -> AgentDependencies:
    if not isinstance(value, dict):
        return AgentDependencies()

    buckets: dict[str, list[str]] = {kind: [] for kind in DEPENDENCY_KINDS}
    other: list[OtherDependency] = []
    for raw_kind, raw_names in value.items():
        kind = str(raw_kind)
        names = [name for name, _ in _decode_entries(raw_names) if name]
        if kind in buckets:
            buckets[kind].extend(names)
        else:
            other.extend(OtherDependency(kind, name) for name in names)

    return AgentDependencies(**buckets, other=other)


def _section(config: dict[str, Any], key: str) -> dict[str, Any]:
    value = config.get(key)
    return value if isinstance(value, dict) else {}


def _text(value: Any) -> str | None:
    """Optional display string; empty values count as missing."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _as_str_list(value: Any) -> list[str]:
    """Coerce a value to a list of strings, or return empty list."""
    if value is None:
        return []
    if not isinstance(value, list):
        value = [value]
    items: list[str] = []
    for item in value:
        if isinstance(item, dict):
            items.extend(f"{k}: {v}" for k, v in item.items())
        else:
            items.append(str(item))
    return items


# ── Extractor ────────────────────────────────────────────────────────

class MetadataExtractor:
    """Turns one unit file into an AgentRecord.

    Extraction never raises: unreadable files, files without a
    configuration block and unexpected failures are all reported as
    ValidationErrors in the returned ExtractionResult.
    """

    def __init__(
        self,
        root_path: Path,
        validator: AgentValidator | None = None,
    ) -> None:
        self._root = root_path
        self._validator = validator or AgentValidator()

    def extract_file(self, path: Path, scope: ScopeContext) -> ExtractionResult:
        """Read *path* as UTF-8, dropping a leading byte-order mark, and extract it."""
        try:
            text = path.read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Cannot read agent file %s: %s", path, exc)
            return self._failure(path, f"Failed to extract metadata: {exc}")
        return self.extract(path, text, scope)

    def extract(self, path: Path, text: str, scope: ScopeContext) -> ExtractionResult:
        logger.debug("Extracting agent metadata from %s", path)
        try:
            parsed = parse_agent_document(text)
            if not parsed.config:
                return self._failure(path, NO_CONFIGURATION)
            record = self._build(path, text, parsed, scope)
        except Exception as exc:
            logger.warning("Failed to extract metadata from %s", path, exc_info=True)
            return self._failure(path, f"Failed to extract metadata: {exc}")

        result = self._validator.validate(record)
        errors: list[ValidationError] = []
        for message in result.errors:
            record.add_error(message)
            errors.append(ValidationError(str(path), message))
        if not result.is_valid:
            logger.warning(
                "Validation failed for %s: %s", path, ", ".join(result.errors)
            )
        return ExtractionResult(path, record, errors)

    def _build(
        self,
        path: Path,
        text: str,
        parsed: ParsedDocument,
        scope: ScopeContext,
    ) -> AgentRecord:
        config = parsed.config
        agent = _section(config, "agent")
        persona = _section(config, "persona")
        stem = path.stem

        # Top-level dependencies win over ones nested in the agent section.
        raw_dependencies = config.get("dependencies")
        if raw_dependencies is None:
            raw_dependencies = agent.get("dependencies")

        principles = persona.get("core_principles")
        if principles is None:
            principles = persona.get("principles")

        return AgentRecord(
            id=_text(agent.get("id")) or stem,
            name=_text(agent.get("name")) or generate_agent_name(stem),
            title=_text(agent.get("title")) or DEFAULT_TITLE,
            icon=_text(agent.get("icon")) or DEFAULT_ICON,
            file_path=path,
            relative_path=os.path.relpath(path, self._root),
            file_name=path.name,
            scope=scope.scope,
            extension_id=scope.extension_id,
            when_to_use=_text(agent.get("whenToUse")),
            customization=_text(agent.get("customization")),
            persona=Persona(
                role=_text(persona.get("role")),
                style=_text(persona.get("style")),
                identity=_text(persona.get("identity")),
                focus=_text(persona.get("focus")),
                principles=_as_str_list(principles),
            ),
            commands=normalize_commands(config.get("commands", agent.get("commands"))),
            dependencies=normalize_dependencies(raw_dependencies),
            raw_content=text,
            content=parsed.content,
            parsed_config=config,
        )

    @staticmethod
    def _failure(path: Path, message: str) -> ExtractionResult:
        return ExtractionResult(path, None, [ValidationError(str(path), message)])
