from __future__ import annotations


class BmadError(Exception):
    """Base exception for all BMad errors."""


# ── Config Errors ────────────────────────────────────────────────────

class ConfigError(BmadError):
    """Invalid or missing configuration."""


# ── Discovery Errors ─────────────────────────────────────────────────

class DiscoveryError(BmadError):
    """Base for agent discovery errors."""


class OrchestrationError(DiscoveryError):
    """The scan itself could not run (scopes could not be enumerated)."""


# ── Agent Definition Errors ─────────────────────────────────────────

class AgentDefinitionError(DiscoveryError):
    """Base for errors attributable to a single agent definition file."""


class ConfigurationParseError(AgentDefinitionError):
    """The configuration block is not valid YAML."""


class MissingConfigurationError(AgentDefinitionError):
    """No configuration block was found in the agent file."""


class StructuralValidationError(AgentDefinitionError):
    """A required field of the agent definition is missing or empty."""


class MissingDependencyError(AgentDefinitionError):
    """A declared dependency could not be found in any scope."""
