from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
import yaml


def agent_config(
    agent_id: str,
    *,
    dependencies: dict[str, Any] | None = None,
    role: str | None = "Investigative Strategist",
    commands: Any = None,
) -> dict[str, Any]:
    config: dict[str, Any] = {
        "agent": {
            "id": agent_id,
            "name": agent_id.capitalize(),
            "title": "Product Manager",
            "icon": "📋",
            "whenToUse": "Use for PRDs and product strategy",
        },
        "persona": {
            "role": role,
            "style": "Analytical, data-driven",
            "identity": "Product manager specialized in discovery",
            "focus": "Creating PRDs",
            "core_principles": ["Understand the why", "Champion the user"],
        },
        "commands": commands if commands is not None else [
            {"help": "Show numbered list of commands"},
            {"create-prd": "Create a PRD"},
        ],
    }
    if dependencies is not None:
        config["dependencies"] = dependencies
    return config


def render_agent(config: dict[str, Any], *, fenced: bool = False, title: str = "Agent") -> str:
    block = yaml.safe_dump(config, sort_keys=False, allow_unicode=True)
    if fenced:
        return f"# {title}\n\nActivation notice.\n\n```yaml\n{block}```\n"
    return f"---\n{block}---\n\n# {title}\n\nActivation notice.\n"


@pytest.fixture
def bmad_root(tmp_path: Path) -> Path:
    """An installation tree with empty core agents/ and shared tasks/ directories."""
    root = tmp_path.resolve() / "install"
    (root / "bmad-core" / "agents").mkdir(parents=True)
    (root / "common" / "tasks").mkdir(parents=True)
    return root


@pytest.fixture
def make_agent():
    """Write an agent unit file and return its path."""

    def _make(
        directory: Path,
        agent_id: str,
        *,
        dependencies: dict[str, Any] | None = None,
        fenced: bool = False,
        role: str | None = "Investigative Strategist",
        stem: str | None = None,
    ) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        config = agent_config(agent_id, dependencies=dependencies, role=role)
        path = directory / f"{stem or agent_id}.md"
        path.write_text(render_agent(config, fenced=fenced, title=agent_id), encoding="utf-8")
        return path

    return _make


@pytest.fixture
def make_file():
    """Create a dependency file (and its parents) and return its path."""

    def _make(path: Path, content: str = "# placeholder\n") -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _make
