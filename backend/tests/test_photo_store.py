
import cv2
import numpy as np
import pytest

from conftest import image_bytes
from photoreg.errors import NotFoundError
from photoreg.photo_store import PhotoDirectory


def touch(photos, *names):
    photos.ensure_root()
    for name in names:
        open(photos.path_for(name), "wb").close()


def test_list_entries_without_root(photos):
    assert not photos.exists()
    assert photos.list_entries() == []


def test_ensure_root_is_idempotent(photos):
    photos.ensure_root()
    photos.ensure_root()
    assert photos.exists()


def test_next_index_uses_existing_files(photos):
    touch(photos, "t1-alice-photo1.png", "t2-alice-photo3.png", "t3-alice-photo7.jpg")
    assert photos.next_index("alice", ".png") == 4
    assert photos.next_index("bob", ".png") == 1


def test_find_photo_missing(photos):
    touch(photos, "t1-alice-photo1.png", "t2-car-ol-photo1.png")
    with pytest.raises(NotFoundError):
        photos.find_photo("carol")


def test_find_photo_without_directory(photos):
    with pytest.raises(NotFoundError):
        photos.find_photo("carol")


def test_find_photo_prefers_oldest_timestamp(photos):
    touch(photos, "300-alice-photo2.png", "20-alice-photo1.jpg", "100-bob-photo1.png")
    assert photos.find_photo("alice") == photos.path_for("20-alice-photo1.jpg")


def test_stage_upload_keeps_extension(photos):
    upload = photos.stage_upload("me.JPG", b"abc")
    assert upload.extension == ".JPG"
    assert upload.path.endswith(".JPG")
    with open(upload.path, "rb") as fh:
        assert fh.read() == b"abc"


def test_write_resized_produces_square(photos, tmp_path):
    source = tmp_path / "src.jpg"
    source.write_bytes(image_bytes(800, 400, ".jpg"))
    photos.ensure_root()

    dest = photos.write_resized(str(source), "1-alice-photo1.jpg")

    assert dest == photos.path_for("1-alice-photo1.jpg")
    img = cv2.imdecode(np.fromfile(dest, dtype=np.uint8), cv2.IMREAD_COLOR)
    assert img.shape[:2] == (300, 300)


def test_custom_size(tmp_path):
    photos = PhotoDirectory(str(tmp_path / "img"), str(tmp_path / "tmp"), width=64, height=32)
    source = tmp_path / "src.png"
    source.write_bytes(image_bytes(100, 100))
    photos.ensure_root()

    dest = photos.write_resized(str(source), "1-a-photo1.png")
    img = cv2.imread(dest)
    assert img.shape[:2] == (32, 64)


def test_discard_is_best_effort(photos, tmp_path):
    path = tmp_path / "gone.png"
    path.write_bytes(b"x")
    photos.discard(str(path))
    assert not path.exists()

    photos.discard(str(path))
    photos.discard(None)
