"""Dependency resolution across the extension, shared and core scopes."""
from __future__ import annotations

import difflib
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from bmad_discovery.types import Scope

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from bmad_discovery.layout import DiscoveryLayout
    from bmad_discovery.session import DiscoverySession
    from bmad_discovery.types import AgentRecord

logger = logging.getLogger("bmad.discovery.resolver")

_SUGGESTION_CUTOFF = 0.3
_MAX_SUGGESTIONS = 5


class DependencyResolver:
    """Maps declared dependency names to files on disk.

    Search order for a record, first existing path wins:

    1. the record's own scope   ``<own base>/<kind>/<name>``
    2. the shared scope         ``<shared>/<kind>/<name>``  (not for shared records)
    3. the core scope           ``<core>/<kind>/<name>``    (extension records only)

    Within each base the name is tried as written and then, unless it
    already ends with it, with the kind's default suffix (``create-doc``
    -> ``create-doc.md``, ``bmad-kb.v2`` -> ``bmad-kb.v2.md``).
    """

    def __init__(
        self,
        layout: DiscoveryLayout,
        dependency_extensions: Mapping[str, str] | None = None,
    ) -> None:
        self._layout = layout
        self._extensions = dict(dependency_extensions or {})

    def own_base(self, record: AgentRecord) -> Path:
        if record.scope is Scope.CORE:
            return self._layout.core_dir
        if record.scope is Scope.EXTENSION and record.extension_id:
            return self._layout.extensions_dir / record.extension_id
        return self._layout.shared_dir

    def search_bases(self, record: AgentRecord) -> list[Path]:
        bases = [self.own_base(record)]
        if record.scope is not Scope.SHARED:
            bases.append(self._layout.shared_dir)
        if record.scope is Scope.EXTENSION:
            bases.append(self._layout.core_dir)
        return bases

    def candidate_paths(self, record: AgentRecord, kind: str, name: str) -> list[Path]:
        suffix = self._extensions.get(kind, ".md")
        names = [name]
        if not name.endswith(suffix):
            names.append(name + suffix)
        return [base / kind / n for base in self.search_bases(record) for n in names]

    def resolve_all(
        self, records: Iterable[AgentRecord], session: DiscoverySession
    ) -> None:
        """Resolve every record's dependencies in place.

        Mutates ``resolved_dependencies``, ``validation_errors`` and
        ``is_valid`` on the records, and the session's error list and
        dependency map. Must run on the session's owning thread.
        """
        logger.info("Validating agent dependencies...")
        for record in records:
            self.resolve_record(record, session)

    def resolve_record(self, record: AgentRecord, session: DiscoverySession) -> None:
        for kind, name in record.dependencies.items():
            candidates = self.candidate_paths(record, kind, name)
            found = next((p for p in candidates if p.exists()), None)

            if found is None:
                checked = ", ".join(str(p) for p in candidates)
                message = f"Missing dependency: {kind}/{name} (checked: {checked})"
                session.add_error(record.file_path, message)
                record.add_error(message)
                suggestions = self.suggest(record, kind, name)
                if suggestions:
                    record.dependency_suggestions.setdefault(kind, {})[name] = suggestions
                logger.warning("Agent '%s': missing dependency %s/%s", record.id, kind, name)
                continue

            record.resolved_dependencies.setdefault(kind, {})[name] = found
            session.map_dependency(name, record.id)

    def suggest(self, record: AgentRecord, kind: str, name: str) -> list[str]:
        """Files with names similar to a missing dependency, best match first."""
        target = Path(name).stem.lower()
        directories = list(dict.fromkeys(
            [self.own_base(record) / kind, self._layout.shared_dir / kind]
        ))

        scored: list[tuple[float, str]] = []
        for directory in directories:
            try:
                entries = sorted(directory.iterdir())
            except OSError:
                continue
            for candidate in entries:
                if not candidate.is_file():
                    continue
                ratio = difflib.SequenceMatcher(
                    None, target, candidate.stem.lower()
                ).ratio()
                if ratio >= _SUGGESTION_CUTOFF:
                    scored.append((ratio, str(candidate)))

        scored.sort(key=lambda item: item[0], reverse=True)
        return [path for _, path in scored[:_MAX_SUGGESTIONS]]
