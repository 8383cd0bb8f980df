import wave
from pathlib import Path

from stemfetch.media.stems import scan_stem_folder, stem_sort_key


def write_silence(path: Path, seconds: float = 1.0, rate: int = 8000) -> Path:
    with wave.open(str(path), "wb") as w:
        w.setnchannels(1)
        w.setsampwidth(2)
        w.setframerate(rate)
        w.writeframes(b"\x00\x00" * int(rate * seconds))
    return path


def test_stems_sort_vocals_drums_bass_other():
    names = [
        "song_(Other)_htdemucs.flac",
        "song_(Bass)_htdemucs.flac",
        "song_(Vocals)_htdemucs.flac",
        "song_(Drums)_htdemucs.flac",
    ]

    ordered = sorted((Path(n) for n in names), key=stem_sort_key)

    assert [p.name for p in ordered] == [
        "song_(Vocals)_htdemucs.flac",
        "song_(Drums)_htdemucs.flac",
        "song_(Bass)_htdemucs.flac",
        "song_(Other)_htdemucs.flac",
    ]


def test_unnamed_stems_fall_back_to_leading_numbers():
    ordered = sorted((Path(n) for n in ["10-b.wav", "2-a.wav", "zzz.wav"]), key=stem_sort_key)

    assert [p.name for p in ordered] == ["2-a.wav", "10-b.wav", "zzz.wav"]


def test_scan_skips_hidden_and_non_audio_files(tmp_path):
    for name in ("vocals.wav", "drums.wav", "bass.wav", "other.wav"):
        write_silence(tmp_path / name)
    (tmp_path / ".vocals.wav.1234.part").write_bytes(b"partial")
    (tmp_path / "notes.txt").write_text("not audio")

    folder = scan_stem_folder(tmp_path)

    assert [s.display_name for s in folder.stems] == ["vocals", "drums", "bass", "other"]
    assert folder.name == tmp_path.name
    assert all(s.duration_s and abs(s.duration_s - 1.0) < 0.01 for s in folder.stems)
    assert folder.is_complete


def test_garbage_file_makes_the_set_incomplete(tmp_path):
    for name in ("vocals.wav", "drums.wav", "bass.wav"):
        write_silence(tmp_path / name)
    (tmp_path / "other.wav").write_bytes(b"this is not a wave file")

    folder = scan_stem_folder(tmp_path)

    assert len(folder.stems) == 4
    assert not folder.stems[-1].is_readable
    assert not folder.is_complete


def test_three_stems_are_not_a_complete_set(tmp_path):
    for name in ("vocals.wav", "drums.wav", "bass.wav"):
        write_silence(tmp_path / name)

    assert not scan_stem_folder(tmp_path).is_complete
