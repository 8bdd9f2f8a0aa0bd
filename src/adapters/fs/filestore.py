import itertools
import os
import shutil
import tempfile
from pathlib import Path


class ScratchStore:
    """
    Transient image files in a private temp directory, plus report output.

    Paths come from a running counter so a file handed to a caller is never
    overwritten by a later render.
    """

    def __init__(self, base_path: str | None = None, prefix: str = "rrdgen-"):
        if base_path is None:
            base_path = tempfile.mkdtemp(prefix=prefix)
        self.base_path = Path(base_path).resolve()
        if not self.base_path.exists():
            os.makedirs(self.base_path, exist_ok=True)
        self._counter = itertools.count()

    def _safe_path(self, path: str) -> Path:
        # Prevent traversal
        target = (self.base_path / path).resolve()
        if not target.is_relative_to(self.base_path):
            raise ValueError(f"Path traversal attempt detected: {path}")
        return target

    def allocate(self, suffix: str = ".png") -> str:
        """Return a fresh absolute path inside the scratch directory."""
        while True:
            target = self._safe_path(f"image-{next(self._counter)}{suffix}")
            if not target.exists():
                return str(target)

    def delete(self, path: str) -> None:
        target = self._safe_path(path)
        if target.exists():
            os.remove(target)

    def copy_to(self, path: str, target: Path) -> Path:
        source = self._safe_path(path)
        if not source.exists():
            raise FileNotFoundError(f"File not found: {path}")
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, target)
        return target

    def make_report_dir(self, root: Path, name: str) -> Path:
        root = Path(root).expanduser()
        root.mkdir(parents=True, exist_ok=True)
        target = root / name
        suffix = 1
        while target.exists():
            target = root / f"{name}-{suffix}"
            suffix += 1
        target.mkdir()
        return target

    def cleanup(self) -> None:
        shutil.rmtree(self.base_path, ignore_errors=True)
