import os
from pathlib import Path

import pytest

from services.catalog import ImageCatalog
from storage.captures import CaptureStore


def _write(root: Path, name: str, mtime: float, data: bytes = b"img") -> None:
    root.mkdir(parents=True, exist_ok=True)
    path = root / name
    path.write_bytes(data)
    os.utime(path, (mtime, mtime))


def test_new_filename_uses_epoch_millis() -> None:
    assert CaptureStore.new_filename(now=1700000000.1234) == "image_1700000000123.jpg"


def test_writer_publishes_only_on_success(tmp_path: Path) -> None:
    store = CaptureStore(root_path=tmp_path / "captures")

    with store.open_writer("image_1.jpg") as handle:
        handle.write(b"abc")
        assert not (tmp_path / "captures" / "image_1.jpg").exists()

    assert store.read_bytes("image_1.jpg") == b"abc"


def test_writer_discards_partial_file_on_error(tmp_path: Path) -> None:
    store = CaptureStore(root_path=tmp_path / "captures")

    with pytest.raises(RuntimeError):
        with store.open_writer("image_2.jpg") as handle:
            handle.write(b"half")
            raise RuntimeError("stream broke")

    assert list((tmp_path / "captures").iterdir()) == []
    with pytest.raises(KeyError):
        store.read_bytes("image_2.jpg")


@pytest.mark.parametrize("name", ["../secret.jpg", "nested/image.jpg", ".hidden.jpg", ""])
def test_resolve_rejects_names_outside_store(tmp_path: Path, name: str) -> None:
    store = CaptureStore(root_path=tmp_path)

    with pytest.raises(KeyError):
        store.resolve(name)


def test_catalog_lists_newest_first_and_filters_extensions(tmp_path: Path) -> None:
    root = tmp_path / "captures"
    _write(root, "image_1.jpg", 1_000)
    _write(root, "image_3.PNG", 3_000)
    _write(root, "image_2.jpeg", 2_000)
    _write(root, "notes.txt", 4_000)
    _write(root, ".image_9.jpg.part", 5_000)
    (root / "subdir.jpg").mkdir()

    images = ImageCatalog(CaptureStore(root_path=root)).list()

    assert [image.filename for image in images] == ["image_3.PNG", "image_2.jpeg", "image_1.jpg"]
    assert images[0].relative_path == "/captures/image_3.PNG"
    assert images[0].captured_at.timestamp() == 3_000


def test_catalog_missing_or_empty_directory_yields_empty_list(tmp_path: Path) -> None:
    missing = ImageCatalog(CaptureStore(root_path=tmp_path / "absent"))
    assert missing.list() == []

    (tmp_path / "empty").mkdir()
    empty = ImageCatalog(CaptureStore(root_path=tmp_path / "empty"))
    assert empty.list() == []


def test_catalog_read_returns_bytes(tmp_path: Path) -> None:
    _write(tmp_path, "image_5.jpg", 5_000, data=b"\xff\xd8bytes")
    catalog = ImageCatalog(CaptureStore(root_path=tmp_path))

    assert catalog.read("image_5.jpg") == b"\xff\xd8bytes"
    with pytest.raises(KeyError):
        catalog.read("image_6.jpg")
