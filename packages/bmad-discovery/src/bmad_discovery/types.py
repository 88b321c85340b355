"""Agent record types produced by discovery."""
from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, NamedTuple

from bmad_core.errors import MissingDependencyError, StructuralValidationError

if TYPE_CHECKING:
    from collections.abc import Iterator

# Dependency kinds that are resolved against the scope directories.
DEPENDENCY_KINDS: tuple[str, ...] = ("tasks", "templates", "checklists", "data", "utils")


# ── Scopes ───────────────────────────────────────────────────────────

class Scope(enum.Enum):
    CORE = "core"
    EXTENSION = "extension"
    SHARED = "shared"


@dataclass(frozen=True, slots=True)
class ScopeContext:
    """Where a unit file came from: its scope tier and the scope's base directory."""

    scope: Scope
    base_path: Path
    extension_id: str | None = None

    @property
    def label(self) -> str:
        return self.extension_id or self.scope.value


class AgentKey(NamedTuple):
    scope: Scope
    extension_id: str | None
    agent_id: str


# ── Agent metadata ───────────────────────────────────────────────────

@dataclass(frozen=True, slots=True)
class Persona:
    role: str | None = None
    style: str | None = None
    identity: str | None = None
    focus: str | None = None
    principles: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class AgentCommand:
    name: str
    description: str | None = None


@dataclass(frozen=True, slots=True)
class OtherDependency:
    """A dependency whose kind is outside DEPENDENCY_KINDS; kept, never resolved."""

    kind: str
    name: str


@dataclass(frozen=True, slots=True)
class AgentDependencies:
    tasks: list[str] = field(default_factory=list)
    templates: list[str] = field(default_factory=list)
    checklists: list[str] = field(default_factory=list)
    data: list[str] = field(default_factory=list)
    utils: list[str] = field(default_factory=list)
    other: list[OtherDependency] = field(default_factory=list)

    def names(self, kind: str) -> list[str]:
        if kind not in DEPENDENCY_KINDS:
            msg = f"Unknown dependency kind: {kind!r}"
            raise KeyError(msg)
        return getattr(self, kind)

    def items(self) -> Iterator[tuple[str, str]]:
        """Yield ``(kind, name)`` for every resolvable dependency, in declaration order."""
        for kind in DEPENDENCY_KINDS:
            for name in getattr(self, kind):
                yield kind, name

    def __len__(self) -> int:
        return sum(len(getattr(self, kind)) for kind in DEPENDENCY_KINDS)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {kind: list(getattr(self, kind)) for kind in DEPENDENCY_KINDS}
        result["other"] = [{"kind": o.kind, "name": o.name} for o in self.other]
        return result


@dataclass(frozen=True, slots=True)
class ValidationError:
    """One problem found while discovering a unit file. Never mutated."""

    file_path: str
    message: str
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "filePath": self.file_path,
            "message": self.message,
            "timestamp": self.timestamp,
        }


@dataclass(slots=True)
class AgentRecord:
    """A discovered agent definition.

    Records are retained even when invalid so their failures can be
    inspected; ``is_valid`` is cleared by the validator or by the
    resolver when a dependency cannot be found.
    """

    id: str
    name: str
    title: str
    icon: str
    file_path: Path
    relative_path: str
    file_name: str
    scope: Scope
    extension_id: str | None = None
    when_to_use: str | None = None
    customization: str | None = None
    persona: Persona = field(default_factory=Persona)
    commands: list[AgentCommand] = field(default_factory=list)
    dependencies: AgentDependencies = field(default_factory=AgentDependencies)
    resolved_dependencies: dict[str, dict[str, Path]] = field(default_factory=dict)
    dependency_suggestions: dict[str, dict[str, list[str]]] = field(default_factory=dict)
    is_valid: bool = True
    validation_errors: list[str] = field(default_factory=list)
    discovered_at: float = field(default_factory=time.time)
    raw_content: str = ""
    content: str = ""
    parsed_config: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> AgentKey:
        return AgentKey(self.scope, self.extension_id, self.id)

    def add_error(self, message: str) -> None:
        self.validation_errors.append(message)
        self.is_valid = False

    def raise_for_errors(self) -> None:
        """Raise if the record carries any validation error.

        Raises:
            MissingDependencyError: If every error is a missing dependency.
            StructuralValidationError: Otherwise.
        """
        if not self.validation_errors:
            return
        combined = "; ".join(self.validation_errors)
        msg = f"Agent '{self.id}' ({self.file_path}) is invalid: {combined}"
        if all(e.startswith("Missing dependency:") for e in self.validation_errors):
            raise MissingDependencyError(msg)
        raise StructuralValidationError(msg)

    def to_dict(self, include_content: bool = False) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "title": self.title,
            "icon": self.icon,
            "filePath": str(self.file_path),
            "relativePath": self.relative_path,
            "fileName": self.file_name,
            "scope": self.scope.value,
            "extensionId": self.extension_id,
            "whenToUse": self.when_to_use,
            "customization": self.customization,
            "persona": {
                "role": self.persona.role,
                "style": self.persona.style,
                "identity": self.persona.identity,
                "focus": self.persona.focus,
                "principles": list(self.persona.principles),
            },
            "commands": [
                {"name": c.name, "description": c.description} for c in self.commands
            ],
            "dependencies": self.dependencies.to_dict(),
            "resolvedDependencies": {
                kind: {name: str(path) for name, path in resolved.items()}
                for kind, resolved in self.resolved_dependencies.items()
            },
            "dependencySuggestions": self.dependency_suggestions,
            "isValid": self.is_valid,
            "validationErrors": list(self.validation_errors),
            "discoveredAt": self.discovered_at,
        }
        if include_content:
            data["rawContent"] = self.raw_content
            data["parsedConfig"] = self.parsed_config
        return data
