from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from platformdirs import PlatformDirs

from .errors import ResolutionFailed

logger = logging.getLogger(__name__)

APP_NAME = "alarmaudio"
ASSET_PREFIX = "assets/"

# Environment variable overrides (useful for tests and embedding apps)
ENV_ASSETS_DIR = "ALARMAUDIO_ASSETS_DIR"
ENV_DOCUMENTS_DIR = "ALARMAUDIO_DOCUMENTS_DIR"


class ResourceKind(str, Enum):
    ASSET = "asset"
    FILE = "file"


@dataclass(frozen=True)
class ResolvedResource:
    """A concrete, engine-consumable audio resource."""

    ref: str
    kind: ResourceKind
    path: Path


class ResourceResolver:
    """Map logical audio references to concrete files.

    - ``assets/...`` references are looked up in the bundled assets directory
    - other relative paths live under the application documents directory
    - absolute paths are used as-is
    """

    def __init__(
        self,
        assets_dir: Optional[Union[str, Path]] = None,
        documents_dir: Optional[Union[str, Path]] = None,
        app_name: str = APP_NAME,
    ) -> None:
        self._assets_dir = self._compute_dir(ENV_ASSETS_DIR, assets_dir, Path.cwd())
        default_docs = Path(PlatformDirs(appname=app_name, appauthor=False).user_data_dir)
        self._documents_dir = self._compute_dir(ENV_DOCUMENTS_DIR, documents_dir, default_docs)

    @staticmethod
    def _compute_dir(env_var: str, explicit: Optional[Union[str, Path]], default: Path) -> Path:
        if explicit is not None:
            return Path(explicit).expanduser().resolve()
        override = os.getenv(env_var)
        if override:
            return Path(override).expanduser().resolve()
        return Path(default).expanduser().resolve()

    @property
    def assets_dir(self) -> Path:
        return self._assets_dir

    @property
    def documents_dir(self) -> Path:
        return self._documents_dir

    def resolve(self, ref: str) -> ResolvedResource:
        if not isinstance(ref, str) or not ref.strip():
            raise ResolutionFailed(f"Invalid audio reference: {ref!r}")

        if ref.startswith(ASSET_PREFIX):
            path = (self._assets_dir / ref).resolve()
            if self._assets_dir not in path.parents:
                raise ResolutionFailed(f"Asset reference escapes the assets directory: {ref}")
            if not path.is_file():
                raise ResolutionFailed(f"Asset not found: {ref} (looked in {self._assets_dir})")
            resolved = ResolvedResource(ref=ref, kind=ResourceKind.ASSET, path=path)
        elif not os.path.isabs(ref):
            resolved = ResolvedResource(ref=ref, kind=ResourceKind.FILE, path=self._documents_dir / ref)
        else:
            resolved = ResolvedResource(ref=ref, kind=ResourceKind.FILE, path=Path(ref))

        logger.debug("Resolved %s -> %s (%s)", ref, resolved.path, resolved.kind.value)
        return resolved
