import pytest

from stemfetch.utils.formatting import format_duration, format_size, format_stem_name


@pytest.mark.parametrize(
    "filename, expected",
    [
        ("song_(Vocals).flac", "Vocals"),
        ("drums.wav", "drums"),
        ("Lead (Take 2)", "Take 2"),
        ("noext", "noext"),
    ],
)
def test_format_stem_name(filename, expected):
    assert format_stem_name(filename) == expected


def test_format_size():
    assert format_size(0) == "0 B"
    assert format_size(512) == "512.0 B"
    assert format_size(5 * 1024 * 1024) == "5.0 MB"


def test_format_duration():
    assert format_duration(0) == "0s"
    assert format_duration(3725) == "1h 2m 5s"
