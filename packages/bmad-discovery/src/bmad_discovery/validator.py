"""Structural validation of discovered agent records."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from bmad_core.errors import StructuralValidationError

if TYPE_CHECKING:
    from bmad_discovery.types import AgentRecord


@dataclass(frozen=True, slots=True)
class ValidationResult:
    is_valid: bool
    errors: list[str] = field(default_factory=list)


class AgentValidator:
    """Checks that an AgentRecord carries the fields downstream generators need.

    Every check runs; a single record can fail several of them.
    Dependency existence is not checked here (see DependencyResolver).
    """

    def validate(self, record: AgentRecord) -> ValidationResult:
        errors: list[str] = []

        if not record.id:
            errors.append("Missing agent ID")
        if not record.name:
            errors.append("Missing agent name")
        if not record.title:
            errors.append("Missing agent title")
        if not record.persona.role:
            errors.append("Missing persona role")

        # Guards against records whose file disappeared after discovery.
        if not record.file_path.exists():
            errors.append("Agent file does not exist")

        if not record.raw_content.strip():
            errors.append("Agent file is empty")

        if not record.parsed_config.get("agent"):
            errors.append("Missing agent configuration in YAML")

        unnamed = sum(1 for cmd in record.commands if not cmd.name.strip())
        if unnamed:
            errors.append(f"{unnamed} commands missing names")

        return ValidationResult(is_valid=not errors, errors=errors)

    def validate_strict(self, record: AgentRecord) -> None:
        """Validate and raise StructuralValidationError if invalid.

        Raises:
            StructuralValidationError: With all validation errors joined.
        """
        result = self.validate(record)
        if not result.is_valid:
            combined = "; ".join(result.errors)
            msg = f"Agent '{record.id or '<unnamed>'}' validation failed: {combined}"
            raise StructuralValidationError(msg)
