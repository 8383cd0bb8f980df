from itertools import permutations

import pytest

from stemfetch.exceptions import FormatError
from stemfetch.models.manifest import ListManifest, MapManifest, normalize_manifest

STEMS = ["vocals.wav", "drums.wav", "bass.wav", "other.wav"]


@pytest.mark.parametrize("names", [list(p) for p in permutations(STEMS)])
def test_list_manifest_preserves_order_and_count(names):
    manifest = normalize_manifest(names)

    assert isinstance(manifest, ListManifest)
    assert len(manifest) == len(names)
    assert [key for key, _ in manifest.as_pairs()] == names
    assert all(key == name for key, name in manifest.as_pairs())


def test_map_manifest_keeps_associations_for_every_iteration_order():
    expected = {"h1": "Vocals.flac", "h2": "Drums.flac", "h3": "Bass.flac"}

    for order in permutations(expected.items()):
        manifest = normalize_manifest(dict(order))

        assert isinstance(manifest, MapManifest)
        assert len(manifest) == 3
        assert dict(manifest.as_pairs()) == expected


def test_map_manifest_views():
    manifest = normalize_manifest({"k": "Vocals.flac"})

    assert manifest.filenames() == ["Vocals.flac"]
    assert manifest.as_mapping() == {"k": "Vocals.flac"}


def test_list_manifest_mapping_view_is_identity():
    manifest = normalize_manifest(["a.wav", "b.wav"])

    assert manifest.as_mapping() == {"a.wav": "a.wav", "b.wav": "b.wav"}
    assert manifest.filenames() == ["a.wav", "b.wav"]


def test_empty_list_is_an_empty_manifest():
    manifest = normalize_manifest([])

    assert isinstance(manifest, ListManifest)
    assert len(manifest) == 0
    assert manifest.as_pairs() == ()


@pytest.mark.parametrize(
    "raw",
    [
        "vocals.wav",
        None,
        42,
        ["vocals.wav", 3],
        {"h1": 7},
        {"h1": ["nested"]},
    ],
)
def test_unrecognized_shapes_raise_format_error(raw):
    with pytest.raises(FormatError):
        normalize_manifest(raw)


def test_repeated_filename_in_list_is_rejected():
    with pytest.raises(FormatError):
        normalize_manifest(["vocals.wav", "vocals.wav"])
