"""Listing and retrieval of captured images."""

from __future__ import annotations

from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path

from models.records import StoredImage
from storage.captures import IMAGE_EXTENSIONS, CaptureStore, build_default_store


class ImageCatalog:

    def __init__(self, store: CaptureStore) -> None:
        self.store = store

    def list(self) -> list[StoredImage]:
        """Return stored images, most recently modified first.

        A missing or empty content store yields an empty list.
        """
        entries: list[tuple[float, StoredImage]] = []
        for path in self.store.iter_files():
            if path.suffix.lower() not in IMAGE_EXTENSIONS:
                continue
            mtime = path.stat().st_mtime
            entries.append(
                (
                    mtime,
                    StoredImage(
                        filename=path.name,
                        relative_path=f"/captures/{path.name}",
                        captured_at=datetime.fromtimestamp(mtime, tz=timezone.utc),
                    ),
                )
            )
        entries.sort(key=lambda entry: entry[0], reverse=True)
        return [image for _, image in entries]

    def resolve(self, filename: str) -> Path:
        return self.store.resolve(filename)

    def read(self, filename: str) -> bytes:
        return self.store.read_bytes(filename)


@lru_cache
def build_default_catalog() -> ImageCatalog:
    return ImageCatalog(store=build_default_store())
