# Path: core/indexing/scanner.py
# Purpose: Scan folders and collect image file paths.
# Layer: core/indexing.
# Details: Recursive walk with a case-insensitive extension filter, in a stable discovery order.

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Iterator, List

from config.settings import DEFAULT_EXTENSIONS
from core.errors import PathError

SUPPORTED_EXTENSIONS = frozenset(DEFAULT_EXTENSIONS)


class ImageScanner:
    """Scan a root directory for supported image files."""

    def __init__(self, root: Path | str, extensions: Iterable[str] = SUPPORTED_EXTENSIONS, role: str = "root") -> None:
        self.root = Path(root)
        self.extensions = {ext.lower() for ext in extensions}
        self.role = role

    def scan(self) -> List[Path]:
        """Return every supported file under the root, sorted by path."""

        return list(self.iter_image_files())

    def iter_image_files(self) -> Iterator[Path]:
        """Yield image files under the root directory in sorted order.

        Raises PathError when the root is missing or not a directory.
        """

        if not self.root.is_dir():
            raise PathError(self.root, self.role)
        paths = sorted(p for p in self.root.rglob("*") if p.suffix.lower() in self.extensions and p.is_file())
        yield from paths

    def relative_path(self, path: Path) -> str:
        """Identity key of a file within this root."""

        return path.relative_to(self.root).as_posix()
