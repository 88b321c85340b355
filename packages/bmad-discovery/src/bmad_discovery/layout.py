"""Directory layout of an installation tree and the scopes it defines."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from bmad_discovery.types import Scope, ScopeContext

if TYPE_CHECKING:
    from bmad_core.config import DiscoveryConfig


@dataclass(frozen=True, slots=True)
class DiscoveryLayout:
    """Absolute locations of the core, extension and shared scopes.

    ::

        <root>/bmad-core/agents/*.md          core units
        <root>/bmad-core/<kind>/              core dependencies
        <root>/expansion-packs/<id>/agents/   extension units
        <root>/expansion-packs/<id>/<kind>/   extension dependencies
        <root>/common/<kind>/                 shared dependencies
    """

    root: Path
    core_dir: Path
    extensions_dir: Path
    shared_dir: Path
    agents_subdir: str = "agents"
    file_extension: str = ".md"

    @classmethod
    def from_config(
        cls, config: DiscoveryConfig, root_path: Path | str | None = None
    ) -> DiscoveryLayout:
        root = Path(root_path if root_path is not None else config.root_path)
        root = root.expanduser().resolve()
        return cls(
            root=root,
            core_dir=root / config.core_dir,
            extensions_dir=root / config.extensions_dir,
            shared_dir=root / config.shared_dir,
            agents_subdir=config.agents_subdir,
            file_extension=config.file_extension,
        )

    def core_scope(self) -> ScopeContext:
        return ScopeContext(Scope.CORE, self.core_dir)

    def extension_scope(self, extension_id: str) -> ScopeContext:
        return ScopeContext(
            Scope.EXTENSION, self.extensions_dir / extension_id, extension_id
        )

    def shared_scope(self) -> ScopeContext:
        return ScopeContext(Scope.SHARED, self.shared_dir)

    def agents_dir(self, scope: ScopeContext) -> Path:
        return scope.base_path / self.agents_subdir

    def absolute(self, path: Path | str) -> Path:
        path = Path(path).expanduser()
        if not path.is_absolute():
            path = self.root / path
        return path.resolve()

    def scope_for_path(self, path: Path | str) -> ScopeContext:
        """Scope that owns the unit file at *path*.

        Paths outside the core and extension trees belong to the
        shared scope.
        """
        path = self.absolute(path)
        if path.is_relative_to(self.core_dir):
            return self.core_scope()
        if path.is_relative_to(self.extensions_dir):
            parts = path.relative_to(self.extensions_dir).parts
            if len(parts) > 1:
                return self.extension_scope(parts[0])
        return self.shared_scope()
