"""
Normalizes the `files` field of a completed job into one uniform shape.

The separation server reports its output files either as a plain list of
filenames (legacy servers) or as an object mapping an opaque retrieval key to
a display filename. Both are modelled as a tagged variant so that every
consumer can simply iterate `as_pairs()`.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Union

from stemfetch.exceptions import FormatError


@dataclass(frozen=True)
class ListManifest:
    """Legacy manifest: the retrieval key of every file is its own filename."""

    names: tuple[str, ...]

    def as_pairs(self) -> tuple[tuple[str, str], ...]:
        return tuple((name, name) for name in self.names)

    def filenames(self) -> list[str]:
        return list(self.names)

    def as_mapping(self) -> dict[str, str]:
        return {name: name for name in self.names}

    def __len__(self) -> int:
        return len(self.names)


@dataclass(frozen=True)
class MapManifest:
    """Hash manifest: opaque retrieval key -> display filename."""

    entries: tuple[tuple[str, str], ...]

    def as_pairs(self) -> tuple[tuple[str, str], ...]:
        return self.entries

    def filenames(self) -> list[str]:
        return [name for _, name in self.entries]

    def as_mapping(self) -> dict[str, str]:
        return dict(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


Manifest = Union[ListManifest, MapManifest]


def _as_name_list(raw: Any) -> list[str] | None:
    # A bare string is iterable but is not a list of names.
    if not isinstance(raw, (list, tuple)):
        return None
    if not all(isinstance(item, str) for item in raw):
        return None
    return list(raw)


def _as_name_map(raw: Any) -> dict[str, str] | None:
    if not isinstance(raw, Mapping):
        return None
    if not all(isinstance(k, str) and isinstance(v, str) for k, v in raw.items()):
        return None
    return dict(raw)


def normalize_manifest(raw: Any) -> Manifest:
    """
    Converts a raw `files` value into a Manifest.

    A sequence of strings is tried first, then a mapping of strings.

    Raises:
        FormatError: If the value is neither shape, or a list repeats a filename.
    """
    names = _as_name_list(raw)
    if names is not None:
        if len(set(names)) != len(names):
            raise FormatError("Manifest lists the same filename more than once.")
        return ListManifest(tuple(names))

    mapping = _as_name_map(raw)
    if mapping is not None:
        return MapManifest(tuple(mapping.items()))

    raise FormatError(
        f"Expected a list of filenames or a key->filename object, got "
        f"{type(raw).__name__}."
    )
