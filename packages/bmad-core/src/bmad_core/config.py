from __future__ import annotations

import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path

from bmad_core.errors import ConfigError

DUPLICATE_POLICIES = ("first-wins", "last-wins")


def _load_toml(path: Path) -> dict:
    """Load a TOML file, returning empty dict if missing."""
    if not path.exists():
        return {}
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError):
        return {}


def _deep_merge(base: dict, override: dict) -> dict:
    """Merge override into base (1 level deep for TOML sections)."""
    merged = dict(base)
    for key, val in override.items():
        if (
            key in merged
            and isinstance(merged[key], dict)
            and isinstance(val, dict)
        ):
            merged[key] = {**merged[key], **val}
        else:
            merged[key] = val
    return merged


@dataclass(frozen=True, slots=True)
class DiscoveryConfig:
    root_path: str = "."
    core_dir: str = "bmad-core"
    extensions_dir: str = "expansion-packs"
    shared_dir: str = "common"
    agents_subdir: str = "agents"
    file_extension: str = ".md"
    max_workers: int = 4
    validate_dependencies: bool = True
    duplicate_policy: str = "first-wins"  # first-wins | last-wins
    dependency_extensions: dict[str, str] = field(
        default_factory=lambda: {"templates": ".yaml"}
    )

    def __post_init__(self) -> None:
        if self.duplicate_policy not in DUPLICATE_POLICIES:
            msg = (
                f"Invalid duplicate_policy {self.duplicate_policy!r}; "
                f"expected one of {', '.join(DUPLICATE_POLICIES)}"
            )
            raise ConfigError(msg)
        if not isinstance(self.max_workers, int) or isinstance(self.max_workers, bool):
            msg = f"max_workers must be an integer, got {self.max_workers!r}"
            raise ConfigError(msg)
        if self.max_workers < 1:
            msg = f"max_workers must be at least 1, got {self.max_workers}"
            raise ConfigError(msg)

    def extension_for(self, kind: str) -> str:
        """Default file suffix probed for a dependency of *kind*."""
        return self.dependency_extensions.get(kind, ".md")


@dataclass(frozen=True, slots=True)
class BmadConfig:
    """Top-level configuration, parsed from bmad.toml."""
    project_name: str = "bmad-project"
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)

    @classmethod
    def from_toml(
        cls, path: Path | str = "bmad.toml"
    ) -> BmadConfig:
        path = Path(path)
        raw = _load_toml(path)
        return cls._from_raw(raw)

    @classmethod
    def load(
        cls, project_dir: Path | str | None = None
    ) -> BmadConfig:
        """Load config with global → project layering.

        Resolution order (later wins):
        1. Built-in defaults
        2. ~/.bmad/config.toml (global)
        3. .bmad/config.toml or bmad.toml (project)
        """
        global_path = Path.home() / ".bmad" / "config.toml"

        project_dir = (
            Path.cwd() if project_dir is None else Path(project_dir)
        )

        # Project config: .bmad/config.toml takes priority
        project_path = project_dir / ".bmad" / "config.toml"
        if not project_path.exists():
            project_path = project_dir / "bmad.toml"

        global_raw = _load_toml(global_path)
        project_raw = _load_toml(project_path)
        merged = _deep_merge(global_raw, project_raw)

        config = cls._from_raw(merged)
        # A relative root is relative to the project, not the process cwd.
        root = Path(config.discovery.root_path)
        if not root.is_absolute():
            config = replace(
                config,
                discovery=replace(
                    config.discovery,
                    root_path=str((project_dir / root).resolve()),
                ),
            )
        return config

    @classmethod
    def _from_raw(cls, raw: dict) -> BmadConfig:
        """Build BmadConfig from a raw TOML dict."""
        discovery_raw = dict(raw.get("discovery", {}))

        def _pick(section: dict, dc: type) -> dict:
            fields = dc.__dataclass_fields__
            return {
                k: v for k, v in section.items() if k in fields
            }

        picked = _pick(discovery_raw, DiscoveryConfig)
        if "dependency_extensions" in picked:
            # Overrides extend the built-in table rather than replace it.
            picked["dependency_extensions"] = {
                **DiscoveryConfig().dependency_extensions,
                **picked["dependency_extensions"],
            }

        return cls(
            project_name=raw.get("project", {}).get(
                "name", "bmad-project"
            ),
            discovery=DiscoveryConfig(**picked),
        )
