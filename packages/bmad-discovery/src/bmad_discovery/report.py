"""Diagnostic snapshot of a discovery session."""
from __future__ import annotations

import json
import os
import platform
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from bmad_discovery.layout import DiscoveryLayout
    from bmad_discovery.session import DiscoverySession


def categorize_error(message: str) -> str:
    """Bucket a validation error message for error statistics."""
    text = message.lower()
    if "dependency" in text:
        return "dependency"
    if "yaml" in text or "parsing" in text or "configuration" in text:
        return "yaml-parsing"
    if "read" in text or "file" in text or "not found" in text:
        return "file-access"
    if text.startswith("missing") or "invalid" in text or "validation" in text:
        return "validation"
    return "unknown"


def build_report(
    session: DiscoverySession,
    layout: DiscoveryLayout,
    *,
    include_agent_details: bool = False,
    include_dependency_map: bool = False,
) -> dict[str, Any]:
    """Assemble a JSON-serializable report of *session*.

    Without ``include_agent_details`` agents are listed by id only;
    without ``include_dependency_map`` only the number of distinct
    dependencies is reported.
    """
    summary = session.statistics().to_dict()
    summary["collisions"] = [c.to_dict() for c in session.collisions]

    records = list(session.records.values())
    if include_agent_details:
        agents: list[Any] = [r.to_dict() for r in records]
    else:
        agents = [r.id for r in records]

    if include_dependency_map:
        dependency_map: dict[str, Any] = {
            name: list(ids) for name, ids in session.dependency_map.items()
        }
    else:
        dependency_map = {"totalDependencies": len(session.dependency_map)}

    return {
        "timestamp": datetime.now(UTC).isoformat(),
        "summary": summary,
        "discoveredAgents": agents,
        "validationErrors": [e.to_dict() for e in session.validation_errors],
        "dependencyMap": dependency_map,
        "systemInfo": {
            "platform": sys.platform,
            "pythonVersion": platform.python_version(),
            "workingDirectory": os.getcwd(),
            "rootPath": str(layout.root),
        },
    }


def write_report(report: dict[str, Any], path: Path | str) -> Path:
    """Write *report* as indented UTF-8 JSON, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(report, indent=2, ensure_ascii=False, default=str),
        encoding="utf-8",
    )
    return path
