from pathlib import Path

from stemfetch.core.cancel import CancelToken
from stemfetch.media.downloader import (
    CANCELLED_REASON,
    DUPLICATE_REASON,
    DownloadCoordinator,
    local_filename,
    select_route,
)
from stemfetch.models.manifest import normalize_manifest
from stemfetch.models.result import DownloadRoute

STEMS = ["vocals.wav", "drums.wav", "bass.wav", "other.wav"]


def _leftover_temp_files(folder: Path) -> list[Path]:
    return [p for p in folder.iterdir() if p.name.endswith(".part")]


async def test_one_failure_does_not_stop_the_others(api, fake_server, tmp_path):
    fake_server.fail_segments = {"drums.wav"}
    pairs = normalize_manifest(STEMS).as_pairs()

    results = await DownloadCoordinator(api).fetch_all("abc123", pairs, tmp_path)

    assert len(results) == 4
    assert sorted(fake_server.download_hits) == sorted(STEMS)
    assert [r.filename for r in results] == STEMS
    ok = [r for r in results if r.ok]
    failed = [r for r in results if not r.ok]
    assert len(ok) == 3
    assert len(failed) == 1
    assert failed[0].filename == "drums.wav"
    assert failed[0].status_code == 500
    assert not (tmp_path / "drums.wav").exists()
    assert fake_server.health_calls == 1
    assert _leftover_temp_files(tmp_path) == []


async def test_hash_route_uses_key_and_names_file_by_display_name(
    api, fake_server, tmp_path
):
    fake_server.file_bodies = {"h1": b"vocals-audio", "h2": b"drums-audio"}
    pairs = normalize_manifest({"h1": "Vocals.flac", "h2": "Drums.flac"}).as_pairs()

    results = await DownloadCoordinator(api).fetch_all("abc123", pairs, tmp_path)

    assert sorted(fake_server.download_hits) == ["h1", "h2"]
    assert all(r.route is DownloadRoute.HASH for r in results)
    assert (tmp_path / "Vocals.flac").read_bytes() == b"vocals-audio"
    assert (tmp_path / "Drums.flac").read_bytes() == b"drums-audio"
    assert fake_server.health_calls == 0


async def test_legacy_route_percent_encodes_the_filename(api, fake_server, tmp_path):
    name = "Lead Vocals (Take 1).wav"

    [result] = await DownloadCoordinator(api).fetch_all(
        "abc123", [(name, name)], tmp_path
    )

    assert result.ok
    assert result.route is DownloadRoute.LEGACY
    assert fake_server.download_hits == [name]
    assert fake_server.raw_download_paths == [
        "/download/abc123/Lead%20Vocals%20%28Take%201%29.wav"
    ]
    assert (tmp_path / name).is_file()


async def test_failed_download_never_touches_existing_final_file(
    api, fake_server, tmp_path
):
    existing = tmp_path / "bass.wav"
    existing.write_bytes(b"previous run")
    fake_server.fail_segments = {"bass.wav"}

    [result] = await DownloadCoordinator(api).fetch_all(
        "abc123", [("bass.wav", "bass.wav")], tmp_path
    )

    assert not result.ok
    assert existing.read_bytes() == b"previous run"
    assert _leftover_temp_files(tmp_path) == []


async def test_successful_download_reports_path_and_size(api, fake_server, tmp_path):
    fake_server.file_bodies = {"other.wav": b"0123456789"}
    dest = tmp_path / "nested" / "song Stems"

    [result] = await DownloadCoordinator(api).fetch_all(
        "abc123", [("other.wav", "other.wav")], dest
    )

    assert result.path == dest / "other.wav"
    assert result.size_bytes == 10
    assert result.path.read_bytes() == b"0123456789"


async def test_health_failure_is_not_escalated(api, fake_server, tmp_path):
    fake_server.fail_segments = set(STEMS)
    fake_server.health_status = 503

    results = await DownloadCoordinator(api).fetch_all(
        "abc123", normalize_manifest(STEMS).as_pairs(), tmp_path
    )

    assert len(results) == 4
    assert not any(r.ok for r in results)
    assert fake_server.health_calls == 1


async def test_cancelled_token_skips_remaining_downloads(api, fake_server, tmp_path):
    token = CancelToken()
    token.cancel()

    results = await DownloadCoordinator(api).fetch_all(
        "abc123", normalize_manifest(STEMS).as_pairs(), tmp_path, cancel_token=token
    )

    assert len(results) == 4
    assert all(r.error == CANCELLED_REASON for r in results)
    assert fake_server.download_hits == []
    assert fake_server.health_calls == 0


async def test_server_supplied_names_stay_inside_destination(
    api, fake_server, tmp_path
):
    [result] = await DownloadCoordinator(api).fetch_all(
        "abc123", [("k1", "../escape.wav")], tmp_path
    )

    assert result.ok
    assert result.path.parent == tmp_path
    assert fake_server.download_hits == ["k1"]


async def test_on_result_sees_every_outcome(api, fake_server, tmp_path):
    fake_server.fail_segments = {"bass.wav"}
    seen = []

    await DownloadCoordinator(api, max_concurrent=1).fetch_all(
        "abc123",
        normalize_manifest(STEMS).as_pairs(),
        tmp_path,
        on_result=seen.append,
    )

    assert sorted(r.filename for r in seen) == sorted(STEMS)


def test_select_route():
    assert select_route("vocals.wav", "vocals.wav") is DownloadRoute.LEGACY
    assert select_route("9f2c", "vocals.wav") is DownloadRoute.HASH


def test_local_filename_keeps_ordinary_names():
    assert local_filename("song_(Vocals)_htdemucs.flac") == "song_(Vocals)_htdemucs.flac"
    assert "/" not in local_filename("../../etc/passwd")


async def test_entries_sharing_a_local_name_are_not_overwritten(
    api, fake_server, tmp_path
):
    fake_server.file_bodies = {"h1": b"first", "h2": b"second"}
    pairs = normalize_manifest({"h1": "Vocals.flac", "h2": "Vocals.flac"}).as_pairs()

    first, second = await DownloadCoordinator(api).fetch_all("abc123", pairs, tmp_path)

    assert first.ok
    assert not second.ok
    assert second.error == DUPLICATE_REASON
    assert fake_server.download_hits == ["h1"]
    assert (tmp_path / "Vocals.flac").read_bytes() == b"first"
    assert fake_server.health_calls == 0


async def test_names_equal_after_sanitizing_count_as_duplicates(
    api, fake_server, tmp_path
):
    pairs = [("k1", "Vocals.flac"), ("k2", "Vo/cals.flac"), ("k3", "VOCALS.flac")]

    results = await DownloadCoordinator(api).fetch_all("abc123", pairs, tmp_path)

    assert [r.ok for r in results] == [True, False, False]
    assert fake_server.download_hits == ["k1"]
    assert len([r for r in results if r.ok]) == len(list(tmp_path.iterdir()))


async def test_download_in_flight_when_cancelled_completes(api, fake_server, tmp_path):
    token = CancelToken()
    fake_server.download_delay = 0.2
    fake_server.on_download_hit = lambda segment: token.cancel()

    results = await DownloadCoordinator(api, max_concurrent=1).fetch_all(
        "abc123", normalize_manifest(STEMS).as_pairs(), tmp_path, cancel_token=token
    )

    assert results[0].ok
    assert results[0].path == tmp_path / "vocals.wav"
    assert results[0].path.read_bytes() == b"audio-bytes:vocals.wav"
    assert [r.error for r in results[1:]] == [CANCELLED_REASON] * 3
    assert fake_server.download_hits == ["vocals.wav"]
    assert _leftover_temp_files(tmp_path) == []
