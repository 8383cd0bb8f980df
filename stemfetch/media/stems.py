"""
Reads a finished stem directory the way the playback side expects it:
four audio files ordered vocals, drums, bass, other.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import mutagen
from mutagen import MutagenError

log = logging.getLogger(__name__)

AUDIO_EXTENSIONS = frozenset({"m4a", "mp3", "wav", "aif", "aiff", "flac", "caf"})
EXPECTED_STEM_COUNT = 4

# Matched as substrings of the lowercased file stem, first hit wins.
STEM_KEYWORDS = (
    ("vocals", 0),
    ("vocal", 0),
    ("vox", 0),
    ("drums", 1),
    ("drum", 1),
    ("perc", 1),
    ("bass", 2),
    ("other", 3),
    ("instr", 3),
    ("accompaniment", 3),
)

_LEADING_NUMBER = re.compile(r"^\D*?(\d+)")


@dataclass(frozen=True)
class StemFile:
    path: Path
    display_name: str
    duration_s: Optional[float] = None

    @property
    def is_readable(self) -> bool:
        return self.duration_s is not None and self.duration_s > 0


@dataclass(frozen=True)
class StemFolder:
    path: Path
    stems: tuple[StemFile, ...]

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def is_complete(self) -> bool:
        """True when the folder holds exactly four readable stems."""
        return len(self.stems) == EXPECTED_STEM_COUNT and all(
            s.is_readable for s in self.stems
        )


def stem_sort_key(path: Path) -> tuple[int, int, str]:
    """
    Orders by stem keyword, then by a leading number such as '02-', then by name.
    """
    name = path.stem.lower()
    for keyword, rank in STEM_KEYWORDS:
        if keyword in name:
            return rank, 0, name
    if match := _LEADING_NUMBER.match(name):
        return int(match.group(1)), 1, name
    return 2**31, 2, name


def probe_duration(filepath: Path) -> Optional[float]:
    """
    Reads the stream length of an audio file with mutagen.

    Returns:
        Duration in seconds, or None if the file is not a recognizable audio file.
    """
    try:
        audio = mutagen.File(filepath)
    except (MutagenError, OSError) as e:
        log.debug(f"Could not read '{filepath}': {e}")
        return None
    if audio is None or audio.info is None:
        log.debug(f"'{filepath}' is not a recognized audio file.")
        return None
    return float(getattr(audio.info, "length", 0.0) or 0.0)


def scan_stem_folder(folder: Path, probe: bool = True) -> StemFolder:
    """Finds audio files below `folder` (hidden files skipped) in stem order."""
    folder = Path(folder)
    audio_files = [
        p
        for p in folder.rglob("*")
        if p.is_file()
        and not p.name.startswith(".")
        and p.suffix.lstrip(".").lower() in AUDIO_EXTENSIONS
    ]
    stems = tuple(
        StemFile(
            path=p,
            display_name=p.stem,
            duration_s=probe_duration(p) if probe else None,
        )
        for p in sorted(audio_files, key=stem_sort_key)
    )
    return StemFolder(path=folder, stems=stems)
