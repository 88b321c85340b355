"""Directory scanning for agent unit files."""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING

from bmad_core.errors import OrchestrationError

if TYPE_CHECKING:
    from pathlib import Path

    from bmad_discovery.extractor import ExtractionResult, MetadataExtractor
    from bmad_discovery.layout import DiscoveryLayout
    from bmad_discovery.session import DiscoverySession
    from bmad_discovery.types import AgentRecord, ScopeContext

logger = logging.getLogger("bmad.discovery.scanner")


class DirectoryScanner:
    """Lists unit files in scope directories and extracts them.

    Files are read on a bounded thread pool; results come back in
    listing order and are merged into the session by the caller's
    thread only.
    """

    def __init__(
        self,
        layout: DiscoveryLayout,
        extractor: MetadataExtractor,
        max_workers: int = 4,
    ) -> None:
        self._layout = layout
        self._extractor = extractor
        self._max_workers = max(1, max_workers)

    def discover_extension_scopes(self) -> list[ScopeContext]:
        """Extension scopes under the extensions directory, in lexical order.

        A sub-directory is an extension scope when it contains the
        agents sub-directory. A missing extensions directory means no
        extensions are installed.

        Raises:
            OrchestrationError: If the extensions directory exists but
                cannot be listed.
        """
        extensions_dir = self._layout.extensions_dir
        if not extensions_dir.exists():
            logger.warning("Extensions directory not found: %s", extensions_dir)
            return []
        if not extensions_dir.is_dir():
            msg = f"Extensions path is not a directory: {extensions_dir}"
            raise OrchestrationError(msg)

        try:
            entries = sorted(extensions_dir.iterdir(), key=lambda p: p.name)
        except OSError as exc:
            msg = f"Cannot list extensions directory {extensions_dir}: {exc}"
            raise OrchestrationError(msg) from exc

        scopes: list[ScopeContext] = []
        for entry in entries:
            if not entry.is_dir():
                continue
            scope = self._layout.extension_scope(entry.name)
            if not self._layout.agents_dir(scope).is_dir():
                logger.debug("Skipping %s: no %s/ directory", entry, self._layout.agents_subdir)
                continue
            scopes.append(scope)
        return scopes

    def list_unit_files(self, directory: Path) -> list[Path]:
        """Unit files directly under *directory*, sorted by name."""
        suffix = self._layout.file_extension
        try:
            entries = sorted(directory.iterdir(), key=lambda p: p.name)
        except OSError as exc:
            msg = f"Cannot list agent directory {directory}: {exc}"
            raise OrchestrationError(msg) from exc
        return [p for p in entries if p.name.endswith(suffix) and p.is_file()]

    def scan_scope(
        self,
        directory: Path,
        scope: ScopeContext,
        session: DiscoverySession,
    ) -> list[AgentRecord]:
        """Extract every unit file in *directory* and merge it into *session*.

        Returns:
            Records in listing order. Files without a usable
            configuration are skipped; their errors are in the session.
        """
        if not directory.exists():
            logger.warning("Agent directory not found: %s", directory)
            return []
        if not directory.is_dir():
            msg = f"Agent path is not a directory: {directory}"
            raise OrchestrationError(msg)

        files = self.list_unit_files(directory)
        logger.debug("Scanning %d file(s) in %s [%s]", len(files), directory, scope.label)

        records: list[AgentRecord] = []
        for result in self.extract_many(files, scope):
            record = session.merge(result)
            if record is not None:
                records.append(record)

        logger.info("Found %d agent(s) in %s scope", len(records), scope.label)
        return records

    def extract_many(
        self, paths: list[Path], scope: ScopeContext
    ) -> list[ExtractionResult]:
        """Extract *paths*, preserving their order in the result."""
        if self._max_workers == 1 or len(paths) < 2:
            return [self._extractor.extract_file(p, scope) for p in paths]

        workers = min(self._max_workers, len(paths))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="bmad-scan") as pool:
            return list(pool.map(lambda p: self._extractor.extract_file(p, scope), paths))
