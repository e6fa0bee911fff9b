from __future__ import annotations

import os
import time
from contextlib import contextmanager
from functools import lru_cache
from pathlib import Path
from typing import BinaryIO, Iterator, Optional

from settings import get_settings

IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png"})


class CaptureStore:
    """Directory-backed content store for captured images.

    The directory is only created on the first write, so a relay that never
    captured anything leaves no trace on disk.
    """

    def __init__(self, root_path: Path) -> None:
        self.root_path = root_path

    @staticmethod
    def new_filename(now: Optional[float] = None) -> str:
        # Two captures in the same millisecond share a name; the later one wins.
        stamp = time.time() if now is None else now
        return f"image_{int(stamp * 1000)}.jpg"

    @contextmanager
    def open_writer(self, filename: str) -> Iterator[BinaryIO]:
        """Yield a binary handle whose contents become ``filename`` on success.

        Data goes to a hidden ``.part`` file that is renamed into place only
        after the block exits cleanly; on error the partial file is removed.
        """
        target = self.path_for(filename)
        self.root_path.mkdir(parents=True, exist_ok=True)
        partial = self.root_path / f".{filename}.part"
        try:
            with partial.open("wb") as handle:
                yield handle
            os.replace(partial, target)
        except BaseException:
            partial.unlink(missing_ok=True)
            raise

    def path_for(self, filename: str) -> Path:
        name = Path(filename).name
        if not name or name != filename or name.startswith("."):
            raise KeyError(f"Invalid capture name {filename!r}.")
        return self.root_path / name

    def resolve(self, filename: str) -> Path:
        path = self.path_for(filename)
        if not path.is_file():
            raise KeyError(f"Capture {filename!r} not found.")
        return path

    def read_bytes(self, filename: str) -> bytes:
        return self.resolve(filename).read_bytes()

    def iter_files(self) -> Iterator[Path]:
        if not self.root_path.is_dir():
            return
        for path in self.root_path.iterdir():
            if path.is_file() and not path.name.startswith("."):
                yield path


@lru_cache
def build_default_store(root_path: Optional[str] = None) -> CaptureStore:
    settings = get_settings()
    root = settings.captures_root_path if root_path is None else root_path
    return CaptureStore(root_path=Path(root))
