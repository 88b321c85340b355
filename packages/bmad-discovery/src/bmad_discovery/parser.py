"""Agent document parser: locates the YAML configuration block in a unit file.

Two encodings are accepted:

* YAML front matter delimited by ``---`` lines at the top of the file.
* A fenced ```` ```yaml ```` block anywhere in the markdown body.

The parser never raises. Malformed YAML is logged and treated the same
as a document with no configuration at all; deciding whether that is an
error is left to the extractor.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any

import yaml
from bmad_core.errors import ConfigurationParseError

logger = logging.getLogger("bmad.discovery.parser")

_FRONT_MATTER = re.compile(
    r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)(.*)\Z",
    re.DOTALL,
)
_FENCED_BLOCK = re.compile(
    r"```ya?ml[ \t]*\r?\n(.*?)\r?\n[ \t]*```",
    re.DOTALL,
)


@dataclass(frozen=True, slots=True)
class ParsedDocument:
    """Configuration mapping plus the narrative markdown that surrounds it."""

    config: dict[str, Any] = field(default_factory=dict)
    content: str = ""
    source: str = "none"  # front-matter | fenced | none
    error: str | None = None

    def raise_for_error(self) -> None:
        """Raise ConfigurationParseError if the configuration block was malformed."""
        if self.error is not None:
            raise ConfigurationParseError(self.error)


def parse_agent_document(text: str) -> ParsedDocument:
    """Split *text* into its configuration mapping and narrative content.

    Front matter is tried first and wins when it yields a non-empty
    mapping. Otherwise the first fenced YAML block is used and removed
    from the returned content. When neither yields a mapping, the
    configuration is empty and the content is *text* unchanged.
    """
    error: str | None = None

    front = _FRONT_MATTER.match(text.lstrip("\ufeff\n"))
    if front is not None:
        config, error = _load_mapping(front.group(1))
        if config:
            return ParsedDocument(config, front.group(2).strip(), "front-matter")

    fenced = _FENCED_BLOCK.search(text)
    if fenced is None:
        logger.debug("No YAML configuration block found")
        return ParsedDocument({}, text, "none", error)

    config, fenced_error = _load_mapping(fenced.group(1))
    if not config:
        return ParsedDocument({}, text, "none", fenced_error or error)

    content = (text[: fenced.start()] + text[fenced.end() :]).strip()
    return ParsedDocument(config, content, "fenced")


def _load_mapping(block: str) -> tuple[dict[str, Any], str | None]:
    """Parse a YAML block with safe_load.

    Returns:
        A ``(mapping, error)`` tuple; the mapping is empty when the
        block is malformed or is not a mapping.
    """
    try:
        result = yaml.safe_load(block)
    except yaml.YAMLError as exc:
        logger.warning("Invalid YAML configuration block: %s", exc)
        return {}, f"Invalid YAML: {exc}"

    if result is None:
        return {}, None
    if not isinstance(result, dict):
        msg = f"YAML configuration must be a mapping, got {type(result).__name__}"
        logger.warning(msg)
        return {}, msg
    return result, None
