"""Uploaded media store tests."""

import pytest

from errors import ValidationError, NotFoundError
from storage import MediaStore, MediaFile


def _jpeg(name="photo.jpg", size=10):
    return MediaFile(filename=name, content_type="image/jpeg", content=b"x" * size)


def _stored(media_store):
    return sorted(p.name for p in media_store.root.iterdir()) if media_store.root.exists() else []


def test_save_all_preserves_order(media_store):
    urls = media_store.save_all([_jpeg("a.JPG"), MediaFile("clip.mp4", "video/mp4", b"v")])

    assert len(urls) == 2
    assert all(url.startswith("/uploads/") for url in urls)
    assert urls[0].endswith(".jpg")
    assert urls[1].endswith(".mp4")
    assert media_store.open(urls[0].rsplit("/", 1)[1]).read_bytes() == b"x" * 10


def test_no_files(media_store):
    assert media_store.save_all([]) == []


def test_too_many_files_writes_nothing(media_store):
    with pytest.raises(ValidationError):
        media_store.save_all([_jpeg() for _ in range(6)])
    assert _stored(media_store) == []


def test_check_count(media_store):
    media_store.check_count(media_store.max_files)
    with pytest.raises(ValidationError):
        media_store.check_count(media_store.max_files + 1)


def test_rejects_non_media_type(media_store):
    with pytest.raises(ValidationError):
        media_store.save_all([_jpeg(), MediaFile("notes.pdf", "application/pdf", b"%PDF")])
    assert _stored(media_store) == []


def test_rejects_oversized_file(media_store):
    with pytest.raises(ValidationError):
        media_store.save_all([_jpeg(size=media_store.max_bytes + 1)])


def test_partial_failure_rolls_back(media_store, monkeypatch):
    original = media_store._write
    calls = []

    def flaky(media):
        calls.append(media.filename)
        if len(calls) == 4:
            raise OSError("disk full")
        return original(media)

    monkeypatch.setattr(media_store, "_write", flaky)
    with pytest.raises(OSError):
        media_store.save_all([_jpeg(f"{i}.jpg") for i in range(5)])

    assert len(calls) == 4
    assert _stored(media_store) == []


def test_discard_ignores_missing(media_store):
    urls = media_store.save_all([_jpeg()])
    media_store.discard(urls + ["/uploads/never-existed.jpg"])
    assert _stored(media_store) == []


@pytest.mark.parametrize("name", ["../secret.txt", "a/b.jpg", "..", ""])
def test_path_traversal_rejected(media_store, name):
    assert media_store.path_for(name) is None
    with pytest.raises(NotFoundError):
        media_store.open(name)


def test_open_missing(media_store):
    with pytest.raises(NotFoundError):
        media_store.open("missing.jpg")
