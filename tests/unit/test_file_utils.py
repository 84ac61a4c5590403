"""Unit tests for file utilities."""

import os

import pytest

from flickr_exporter.utils.file_utils import (
    STUB_SIGNATURE,
    STUB_SIZE,
    build_asset_filename,
    extension_from_url,
    is_stub_content,
    is_stub_file,
    photo_id_from_filename,
    sanitize_title,
    write_bytes_atomic,
)


def test_sanitize_title():
    """Test title sanitization."""
    test_cases = [
        ("Sunset", "Sunset"),
        ("Sunset at the beach!", "Sunset_at_the_beach_"),
        ("IMG_1234.final-v2", "IMG_1234.final-v2"),
        ("café/été", "caf___t_"),
        ("", ""),
        ("x" * 80, "x" * 50),
    ]

    for input_title, expected in test_cases:
        assert sanitize_title(input_title) == expected


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://live.staticflickr.com/65535/111_abc_o.jpg", "jpg"),
        ("https://live.staticflickr.com/65535/111_abc_o.PNG", "png"),
        ("https://live.staticflickr.com/video/111/abc/700.mp4?s=eyJpIjo", "mp4"),
        ("https://live.staticflickr.com/65535/111_abc_o", "jpg"),
        ("https://example.com/photo.jpeg_large", "jpg"),
        ("https://example.com/file.jpg%3Fsize%3Dlarge", "jpg"),
        ("https://example.com/archive.tar.gz", "gz"),
    ],
)
def test_extension_from_url(url, expected):
    """Test extension guessing with its jpg fallback."""
    assert extension_from_url(url) == expected


def test_build_asset_filename():
    """Test the deterministic asset filename."""
    assert (
        build_asset_filename("111", "My trip #3", "https://live.staticflickr.com/1/111_a_o.jpg")
        == "111_My_trip__3.jpg"
    )


def test_photo_id_from_filename():
    """Test reading the photo id back from a filename."""
    assert photo_id_from_filename("/data/photos/53811_My_trip__3.jpg") == "53811"
    assert photo_id_from_filename("53811_.jpg") == "53811"


def test_stub_detection(tmp_path):
    """Test that only files matching both length and content are stubs."""
    stub = tmp_path / "1_stub.jpg"
    stub.write_bytes(STUB_SIGNATURE)
    same_length = tmp_path / "2_tiny.jpg"
    same_length.write_bytes(b"\x89PNG" + b"\x00" * (STUB_SIZE - 4))
    longer = tmp_path / "3_long.jpg"
    longer.write_bytes(STUB_SIGNATURE + b"\n")

    assert STUB_SIZE == 117
    assert is_stub_file(stub)
    assert not is_stub_file(same_length)
    assert not is_stub_file(longer)
    assert not is_stub_file(tmp_path / "missing.jpg")
    assert not is_stub_file(tmp_path)


def test_stub_content_needs_marker():
    """Test that a same-length body without the marker is not a stub."""
    assert is_stub_content(STUB_SIGNATURE)
    assert not is_stub_content(STUB_SIGNATURE.replace(b"429", b"503"))


def test_write_bytes_atomic(tmp_path):
    """Test that atomic writes leave only the final file."""
    target = tmp_path / "111_photo.jpg"
    write_bytes_atomic(target, b"first")
    write_bytes_atomic(target, b"second")

    assert target.read_bytes() == b"second"
    assert os.listdir(tmp_path) == ["111_photo.jpg"]
