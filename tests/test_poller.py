import pytest

from stemfetch.api.poller import StatusPoller
from stemfetch.exceptions import FormatError, TransientPollError
from stemfetch.models.manifest import ListManifest, MapManifest
from stemfetch.models.status import JobState, JobStatus


async def test_processing_status_with_progress(api, fake_server):
    fake_server.statuses = [{"status": "processing", "progress": 10}]

    status = await StatusPoller(api).poll("abc123")

    assert status.state is JobState.PROCESSING
    assert status.progress == 10
    assert not status.is_terminal
    assert fake_server.status_calls == 1


async def test_unrecognized_status_decodes_to_unknown_keeping_other_fields(
    api, fake_server
):
    fake_server.statuses = [
        {
            "status": "warming-up-gpu",
            "progress": 55,
            "current_model_index": 1,
            "total_models": 3,
        }
    ]

    status = await StatusPoller(api).poll("abc123")

    assert status.state is JobState.UNKNOWN
    assert status.raw_status == "warming-up-gpu"
    assert status.progress == 55
    assert status.model_progress == (1, 3)
    assert status.describe_progress() == "55% (Model 2/3)"


async def test_status_strings_are_case_insensitive(api, fake_server):
    fake_server.statuses = [{"status": "Completed", "files": ["vocals.wav"]}]

    status = await StatusPoller(api).poll("abc123")

    assert status.state is JobState.COMPLETED
    assert isinstance(status.files, ListManifest)


async def test_mistyped_fields_are_treated_as_absent(api, fake_server):
    fake_server.statuses = [
        {
            "status": 42,
            "progress": "ten",
            "current_model_index": "0",
            "total_models": 2,
            "files": 12,
            "eta_seconds": 30,
        }
    ]

    status = await StatusPoller(api).poll("abc123")

    assert status.state is JobState.UNKNOWN
    assert status.progress is None
    assert status.current_model_index is None
    assert status.total_models == 2
    assert status.model_progress is None
    assert status.files is None
    assert isinstance(status.files_error, FormatError)


async def test_hash_manifest_is_decoded(api, fake_server):
    fake_server.statuses = [
        {"status": "completed", "files": {"h1": "Vocals.flac", "h2": "Drums.flac"}}
    ]

    status = await StatusPoller(api).poll("abc123")

    assert isinstance(status.files, MapManifest)
    assert dict(status.files.as_pairs()) == {"h1": "Vocals.flac", "h2": "Drums.flac"}


async def test_progress_is_echoed_as_received(api, fake_server):
    fake_server.statuses = [
        {"status": "processing", "progress": 50},
        {"status": "processing", "progress": 40},
    ]
    poller = StatusPoller(api)

    first = await poller.poll("abc123")
    second = await poller.poll("abc123")

    assert (first.progress, second.progress) == (50, 40)


@pytest.mark.parametrize(
    "entry",
    [
        (200, "<html>gateway</html>"),
        (200, "[1, 2, 3]"),
        (503, '{"status": "processing"}'),
    ],
)
async def test_unusable_responses_raise_transient_error(api, fake_server, entry):
    fake_server.statuses = [entry]

    with pytest.raises(TransientPollError):
        await StatusPoller(api).poll("abc123")


def test_from_payload_ignores_boolean_progress():
    status = JobStatus.from_payload({"status": "processing", "progress": True})

    assert status.progress is None


async def test_body_that_is_not_utf8_raises_transient_error(api, fake_server):
    fake_server.statuses = [(200, b'{"status": "processing", "x": "\xff\xfe"}')]

    with pytest.raises(TransientPollError) as excinfo:
        await StatusPoller(api).poll("abc123")

    assert excinfo.value.status == 200


async def test_unreadable_manifest_is_kept_as_files_error(api, fake_server):
    fake_server.statuses = [{"status": "completed", "files": "vocals.wav"}]

    status = await StatusPoller(api).poll("abc123")

    assert status.files is None
    assert isinstance(status.files_error, FormatError)
