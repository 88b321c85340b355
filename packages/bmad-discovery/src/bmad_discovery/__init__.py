"""Agent discovery: unit-file parsing, extraction, validation and dependency resolution."""
from __future__ import annotations

from bmad_discovery.discovery import AgentDiscovery, RetryResult
from bmad_discovery.extractor import (
    ExtractionResult,
    MetadataExtractor,
    generate_agent_name,
    normalize_commands,
    normalize_dependencies,
)
from bmad_discovery.layout import DiscoveryLayout
from bmad_discovery.parser import ParsedDocument, parse_agent_document
from bmad_discovery.report import build_report, categorize_error, write_report
from bmad_discovery.resolver import DependencyResolver
from bmad_discovery.scanner import DirectoryScanner
from bmad_discovery.session import (
    DiscoverySession,
    DiscoveryStatistics,
    DuplicatePolicy,
    IdCollision,
)
from bmad_discovery.types import (
    DEPENDENCY_KINDS,
    AgentCommand,
    AgentDependencies,
    AgentKey,
    AgentRecord,
    OtherDependency,
    Persona,
    Scope,
    ScopeContext,
    ValidationError,
)
from bmad_discovery.validator import AgentValidator, ValidationResult

__all__ = [
    "DEPENDENCY_KINDS",
    "AgentCommand",
    "AgentDependencies",
    "AgentDiscovery",
    "AgentKey",
    "AgentRecord",
    "AgentValidator",
    "DependencyResolver",
    "DirectoryScanner",
    "DiscoveryLayout",
    "DiscoverySession",
    "DiscoveryStatistics",
    "DuplicatePolicy",
    "ExtractionResult",
    "IdCollision",
    "MetadataExtractor",
    "OtherDependency",
    "ParsedDocument",
    "Persona",
    "RetryResult",
    "Scope",
    "ScopeContext",
    "ValidationError",
    "ValidationResult",
    "build_report",
    "categorize_error",
    "generate_agent_name",
    "normalize_commands",
    "normalize_dependencies",
    "parse_agent_document",
    "write_report",
]
