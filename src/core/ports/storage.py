"""
Artifact Storage Port.

Scratch storage for transient cached images plus copying of finished
images into report directories.

Invariants:
- Allocated paths are never reused within one store lifetime
- Deleting a missing file is not an error
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol


class ArtifactStorePort(Protocol):
    def allocate(self, suffix: str = ".png") -> str:
        """Return a fresh absolute path inside the scratch directory."""
        ...

    def delete(self, path: str) -> None:
        """Remove an artifact file if it exists."""
        ...

    def copy_to(self, path: str, target: Path) -> Path:
        """
        Copy an artifact to `target`.

        Raises:
            FileNotFoundError: If the source artifact is gone
        """
        ...

    def make_report_dir(self, root: Path, name: str) -> Path:
        """Create a new report directory under `root`, never reusing one."""
        ...

    def cleanup(self) -> None:
        """Remove the scratch directory and everything in it."""
        ...
