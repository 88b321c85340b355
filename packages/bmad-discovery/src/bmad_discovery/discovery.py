"""Agent discovery: scan, validate and resolve every agent in an installation tree."""
from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from bmad_core.config import BmadConfig, DiscoveryConfig
from bmad_core.errors import OrchestrationError
from bmad_core.logging import set_level

from bmad_discovery.extractor import MetadataExtractor
from bmad_discovery.layout import DiscoveryLayout
from bmad_discovery.report import build_report, categorize_error, write_report
from bmad_discovery.resolver import DependencyResolver
from bmad_discovery.scanner import DirectoryScanner
from bmad_discovery.session import (
    DiscoverySession,
    DiscoveryStatistics,
    DuplicatePolicy,
    OnValidationError,
)
from bmad_discovery.types import AgentRecord
from bmad_discovery.validator import AgentValidator

if TYPE_CHECKING:
    from bmad_discovery.types import Scope, ValidationError

logger = logging.getLogger("bmad.discovery")

OnRecord = Callable[[AgentRecord], None]


@dataclass(slots=True)
class RetryResult:
    retried: list[Path] = field(default_factory=list)
    still_failed: list[Path] = field(default_factory=list)
    errors: list[dict[str, str]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.still_failed


class AgentDiscovery:
    """Discovers agent definitions and resolves their dependencies.

    Each ``scan_all`` starts a fresh DiscoverySession; the previous one
    is discarded. ``retry_failed`` and the lookup helpers operate on the
    most recent session.

    Lifecycle of a scan:
    1. SCAN     -- core scope, then each extension scope in lexical order
    2. VALIDATE -- structural checks run per file during extraction
    3. RESOLVE  -- dependency lookup across own, shared and core scopes
    """

    def __init__(
        self,
        config: DiscoveryConfig | None = None,
        *,
        root_path: Path | str | None = None,
        on_record: OnRecord | None = None,
        on_error: OnValidationError | None = None,
    ) -> None:
        self._config = config or DiscoveryConfig()
        self.layout = DiscoveryLayout.from_config(self._config, root_path)
        self._extractor = MetadataExtractor(self.layout.root, AgentValidator())
        self._scanner = DirectoryScanner(
            self.layout, self._extractor, max_workers=self._config.max_workers
        )
        self._resolver = DependencyResolver(
            self.layout, self._config.dependency_extensions
        )
        self._duplicate_policy = DuplicatePolicy(self._config.duplicate_policy)
        self._on_record = on_record
        self._on_error = on_error
        self._saved_level: int | None = None
        self._session = self._new_session()

    @classmethod
    def from_project(
        cls, project_dir: Path | str | None = None, **kwargs: Any
    ) -> AgentDiscovery:
        """Build a discovery for *project_dir* using its layered bmad.toml."""
        config = BmadConfig.load(project_dir)
        return cls(config.discovery, **kwargs)

    @property
    def session(self) -> DiscoverySession:
        return self._session

    @property
    def resolver(self) -> DependencyResolver:
        return self._resolver

    # ── Scanning ─────────────────────────────────────────────────────

    def scan_all(self) -> list[AgentRecord]:
        """Scan all scopes and resolve dependencies.

        Returns:
            Every extracted record, core first, then extensions in
            lexical order. Invalid records are included.

        Raises:
            OrchestrationError: If a scope directory cannot be enumerated.
        """
        logger.info("Starting agent discovery in %s", self.layout.root)
        session = self._new_session()
        self._session = session

        try:
            core_scope = self.layout.core_scope()
            core = self._scanner.scan_scope(
                self.layout.agents_dir(core_scope), core_scope, session
            )

            extensions: list[AgentRecord] = []
            for scope in self._scanner.discover_extension_scopes():
                logger.debug("Scanning extension: %s", scope.extension_id)
                extensions.extend(
                    self._scanner.scan_scope(self.layout.agents_dir(scope), scope, session)
                )
        except OrchestrationError:
            logger.error("Agent discovery aborted", exc_info=True)
            raise
        except OSError as exc:
            msg = f"Agent discovery failed under {self.layout.root}: {exc}"
            raise OrchestrationError(msg) from exc

        records = core + extensions
        if self._config.validate_dependencies:
            self._resolver.resolve_all(records, session)

        for record in records:
            self._emit_record(record)

        stats = session.statistics()
        logger.info(
            "Discovered %d agent(s): %d core, %d extension, %d invalid, %d error(s)",
            len(records),
            len(core),
            len(extensions),
            stats.invalid,
            stats.validation_errors,
        )
        return records

    async def ascan_all(self) -> list[AgentRecord]:
        """``scan_all`` for async callers; runs on a worker thread."""
        return await asyncio.to_thread(self.scan_all)

    def retry_failed(self, paths: list[Path | str] | None = None) -> RetryResult:
        """Re-extract files that previously failed.

        Args:
            paths: Files to retry. When *None*, every distinct file path
                in the session's validation errors is retried.

        Returns:
            A RetryResult; a path is ``retried`` only if it now yields
            a valid record. Existing errors are never removed; records
            previously extracted from a retried file are replaced.
        """
        session = self._session
        targets = (
            list(paths) if paths is not None else list(session.failed_paths())
        )
        result = RetryResult()
        if not targets:
            logger.info("No failed agent discoveries to retry")
            return result

        logger.info("Retrying discovery for %d agent file(s)", len(targets))
        for target in targets:
            path = self.layout.absolute(target)
            try:
                record = self._retry_one(path, session)
            except Exception as exc:
                logger.error("Retry error for %s: %s", path, exc, exc_info=True)
                result.still_failed.append(path)
                result.errors.append({"path": str(path), "error": str(exc)})
                continue

            if record is not None and record.is_valid:
                result.retried.append(path)
                logger.info("Successfully retried discovery for %s", path)
            else:
                if record is not None:
                    reason = "; ".join(record.validation_errors)
                else:
                    reason = session.validation_errors[-1].message
                result.still_failed.append(path)
                result.errors.append({"path": str(path), "error": reason})
                logger.warning("Retry still failed for %s: %s", path, reason)

        logger.info(
            "Discovery retry complete. Success: %d, Failed: %d",
            len(result.retried),
            len(result.still_failed),
        )
        return result

    def _retry_one(self, path: Path, session: DiscoverySession) -> AgentRecord | None:
        extraction = self._extractor.extract_file(path, self.layout.scope_for_path(path))
        # The file may now declare another id, or nothing at all.
        session.drop_path(path)

        record = session.merge(extraction)
        if record is None:
            return None
        if self._config.validate_dependencies:
            self._resolver.resolve_record(record, session)
        self._emit_record(record)
        return record

    # ── Lookups ──────────────────────────────────────────────────────

    def get_agent(self, agent_id: str) -> AgentRecord | None:
        return self._session.get(agent_id)

    def agents(self) -> list[AgentRecord]:
        return list(self._session.records.values())

    def agents_by_scope(self, scope: Scope) -> list[AgentRecord]:
        return [r for r in self._session.records.values() if r.scope is scope]

    def agents_by_extension(self, extension_id: str) -> list[AgentRecord]:
        return [
            r for r in self._session.records.values() if r.extension_id == extension_id
        ]

    @property
    def validation_errors(self) -> list[ValidationError]:
        return self._session.validation_errors

    @property
    def dependency_map(self) -> dict[str, list[str]]:
        return self._session.dependency_map

    def statistics(self) -> DiscoveryStatistics:
        return self._session.statistics()

    def error_statistics(self) -> dict[str, Any]:
        """Validation errors bucketed by category, agent file and source."""
        by_type: Counter[str] = Counter()
        by_agent: Counter[str] = Counter()
        by_source: Counter[str] = Counter()
        for error in self._session.validation_errors:
            by_type[categorize_error(error.message)] += 1
            by_agent[Path(error.file_path).stem] += 1
            by_source[self.layout.scope_for_path(error.file_path).label] += 1

        return {
            "totalValidationErrors": len(self._session.validation_errors),
            "errorsByType": dict(by_type),
            "errorsByAgent": dict(by_agent),
            "errorsBySource": dict(by_source),
        }

    # ── Diagnostics ──────────────────────────────────────────────────

    def diagnostic_report(
        self,
        *,
        include_agent_details: bool = False,
        include_dependency_map: bool = False,
        export_path: Path | str | None = None,
    ) -> dict[str, Any]:
        """Snapshot the current session, optionally writing it as JSON.

        A failed export is reported in the returned dict
        (``exported``/``exportError``) rather than raised.
        """
        report = build_report(
            self._session,
            self.layout,
            include_agent_details=include_agent_details,
            include_dependency_map=include_dependency_map,
        )
        if export_path is None:
            return report

        try:
            written = write_report(report, export_path)
        except OSError as exc:
            logger.error("Failed to export discovery report to %s: %s", export_path, exc)
            report["exported"] = False
            report["exportError"] = str(exc)
        else:
            logger.info("Discovery diagnostic report exported to %s", written)
            report["exported"] = True
            report["exportPath"] = str(written)
        return report

    def enable_diagnostic_mode(self) -> None:
        """Log per-file discovery activity at DEBUG."""
        if self._saved_level is None:
            self._saved_level = set_level("discovery", logging.DEBUG)
        logger.info("Diagnostic mode enabled for agent discovery")

    def disable_diagnostic_mode(self) -> None:
        if self._saved_level is not None:
            set_level("discovery", self._saved_level)
            self._saved_level = None
        logger.info("Diagnostic mode disabled for agent discovery")

    def clear(self) -> None:
        """Discard the current session."""
        self._session = self._new_session()
        logger.info("Discovery history cleared")

    # ── Internals ────────────────────────────────────────────────────

    def _new_session(self) -> DiscoverySession:
        return DiscoverySession(
            duplicate_policy=self._duplicate_policy, on_error=self._on_error
        )

    def _emit_record(self, record: AgentRecord) -> None:
        if self._on_record:
            with contextlib.suppress(Exception):
                self._on_record(record)
