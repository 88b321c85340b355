"""BMad Core: shared config, errors, and logging."""
from __future__ import annotations

from bmad_core._version import __version__
from bmad_core.config import BmadConfig, DiscoveryConfig
from bmad_core.errors import (
    AgentDefinitionError,
    BmadError,
    ConfigError,
    ConfigurationParseError,
    DiscoveryError,
    MissingConfigurationError,
    MissingDependencyError,
    OrchestrationError,
    StructuralValidationError,
)
from bmad_core.logging import get_logger, set_level, setup_logging

__all__ = [
    # Errors
    "AgentDefinitionError",
    # Config
    "BmadConfig",
    "BmadError",
    "ConfigError",
    "ConfigurationParseError",
    "DiscoveryConfig",
    "DiscoveryError",
    "MissingConfigurationError",
    "MissingDependencyError",
    "OrchestrationError",
    "StructuralValidationError",
    # Version
    "__version__",
    # Logging
    "get_logger",
    "set_level",
    "setup_logging",
]
