"""Mutable state of one discovery run."""
from __future__ import annotations

import contextlib
import enum
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from bmad_discovery.types import AgentKey, AgentRecord, Scope, ValidationError

if TYPE_CHECKING:
    from bmad_discovery.extractor import ExtractionResult

logger = logging.getLogger("bmad.discovery.session")

OnValidationError = Callable[[ValidationError], None]


class DuplicatePolicy(enum.Enum):
    """Which record ``DiscoverySession.get`` returns when ids collide."""

    FIRST_WINS = "first-wins"
    LAST_WINS = "last-wins"


@dataclass(frozen=True, slots=True)
class IdCollision:
    agent_id: str
    kept: AgentKey
    shadowed: AgentKey
    kept_path: str
    shadowed_path: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.agent_id,
            "kept": self.kept_path,
            "shadowed": self.shadowed_path,
        }


@dataclass(frozen=True, slots=True)
class DiscoveryStatistics:
    total: int = 0
    core: int = 0
    extension: int = 0
    shared: int = 0
    valid: int = 0
    invalid: int = 0
    validation_errors: int = 0
    extensions: list[str] = field(default_factory=list)
    dependencies: int = 0
    id_collisions: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "core": self.core,
            "extension": self.extension,
            "shared": self.shared,
            "valid": self.valid,
            "invalid": self.invalid,
            "validationErrors": self.validation_errors,
            "extensions": list(self.extensions),
            "dependencies": self.dependencies,
            "idCollisions": self.id_collisions,
        }


@dataclass
class DiscoverySession:
    """Records, errors and the reverse dependency map of one scan.

    Records are keyed by ``(scope, extension_id, id)`` so agents that
    share an id across scopes never overwrite each other; ``get`` is
    the id-only lookup and applies ``duplicate_policy``.

    A session has a single writer: the orchestrator thread. Worker
    threads only produce ExtractionResults, which are merged here.
    """

    duplicate_policy: DuplicatePolicy = DuplicatePolicy.FIRST_WINS
    on_error: OnValidationError | None = None
    records: dict[AgentKey, AgentRecord] = field(default_factory=dict)
    validation_errors: list[ValidationError] = field(default_factory=list)
    dependency_map: dict[str, list[str]] = field(default_factory=dict)
    collisions: list[IdCollision] = field(default_factory=list)
    started_at: float = field(default_factory=time.time)
    _by_id: dict[str, AgentKey] = field(default_factory=dict, repr=False)

    # ── Writes ───────────────────────────────────────────────────────

    def add_error(self, file_path: Path | str, message: str) -> ValidationError:
        error = ValidationError(str(file_path), message)
        self._append_error(error)
        return error

    def merge(self, result: ExtractionResult) -> AgentRecord | None:
        """Fold one extraction result into the session."""
        for error in result.errors:
            self._append_error(error)
        if result.record is not None:
            self.register(result.record)
        return result.record

    def register(self, record: AgentRecord) -> None:
        key = record.key
        self.records[key] = record

        current = self._by_id.get(record.id)
        if current is None or current == key:
            self._by_id[record.id] = key
            return

        if self.duplicate_policy is DuplicatePolicy.FIRST_WINS:
            kept, shadowed = current, key
        else:
            kept, shadowed = key, current
            self._by_id[record.id] = key

        collision = IdCollision(
            agent_id=record.id,
            kept=kept,
            shadowed=shadowed,
            kept_path=str(self.records[kept].file_path),
            shadowed_path=str(self.records[shadowed].file_path),
        )
        self.collisions.append(collision)
        logger.warning(
            "Duplicate agent id '%s': using %s, shadowing %s",
            record.id,
            collision.kept_path,
            collision.shadowed_path,
        )

    def map_dependency(self, name: str, agent_id: str) -> None:
        self.dependency_map.setdefault(name, []).append(agent_id)

    def unmap_record(self, record: AgentRecord) -> None:
        """Drop the dependency-map entries contributed by *record*."""
        for resolved in record.resolved_dependencies.values():
            for name in resolved:
                consumers = self.dependency_map.get(name)
                if not consumers or record.id not in consumers:
                    continue
                consumers.remove(record.id)
                if not consumers:
                    del self.dependency_map[name]

    def drop_path(self, file_path: Path | str) -> list[AgentRecord]:
        """Remove every record extracted from *file_path*.

        Their dependency-map entries and collisions go with them. When a
        dropped record owned its id, the id falls back to a remaining
        record with the same id, chosen by ``duplicate_policy``.
        """
        target = Path(file_path)
        dropped_keys = [k for k, r in self.records.items() if r.file_path == target]
        dropped: list[AgentRecord] = []
        for key in dropped_keys:
            record = self.records.pop(key)
            self.unmap_record(record)
            dropped.append(record)

            if self._by_id.get(record.id) == key:
                remaining = [k for k in self.records if k.agent_id == record.id]
                if not remaining:
                    del self._by_id[record.id]
                elif self.duplicate_policy is DuplicatePolicy.FIRST_WINS:
                    self._by_id[record.id] = remaining[0]
                else:
                    self._by_id[record.id] = remaining[-1]

        if dropped_keys:
            self.collisions = [
                c for c in self.collisions
                if c.kept not in dropped_keys and c.shadowed not in dropped_keys
            ]
            logger.debug("Dropped %d record(s) for %s", len(dropped_keys), target)
        return dropped

    def _append_error(self, error: ValidationError) -> None:
        self.validation_errors.append(error)
        if self.on_error is not None:
            with contextlib.suppress(Exception):
                self.on_error(error)

    # ── Reads ────────────────────────────────────────────────────────

    def get(self, agent_id: str) -> AgentRecord | None:
        key = self._by_id.get(agent_id)
        return self.records.get(key) if key is not None else None

    def failed_paths(self) -> list[str]:
        """File paths with at least one validation error, first-seen order."""
        return list(dict.fromkeys(e.file_path for e in self.validation_errors))

    def statistics(self) -> DiscoveryStatistics:
        records = list(self.records.values())
        return DiscoveryStatistics(
            total=len(records),
            core=sum(1 for r in records if r.scope is Scope.CORE),
            extension=sum(1 for r in records if r.scope is Scope.EXTENSION),
            shared=sum(1 for r in records if r.scope is Scope.SHARED),
            valid=sum(1 for r in records if r.is_valid),
            invalid=sum(1 for r in records if not r.is_valid),
            validation_errors=len(self.validation_errors),
            extensions=sorted({r.extension_id for r in records if r.extension_id}),
            dependencies=len(self.dependency_map),
            id_collisions=len(self.collisions),
        )
