"""Unit tests for segment-level orchestration and the failure threshold."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from captionflow.config import OrchestrationConfig, STTConfig
from captionflow.errors import (
    ConfigurationError,
    EmptyTranscriptError,
    TranscriptionCallError,
    TranscriptionFailedError,
)
from captionflow.stt.client import TranscriptionClient
from captionflow.transcription.orchestrator import (
    SegmentOrchestrator,
    SegmentState,
    segment_retry_policy,
)


def _index(audio: bytes) -> int:
    return int(audio.decode().rsplit("-", 1)[1])


def _orchestrator(client, no_sleep, **config) -> SegmentOrchestrator:
    values = {"max_attempts": 3, "backoff_sec": 2.0, "max_failure_ratio": 0.5, "max_concurrency": 1}
    values.update(config)
    return SegmentOrchestrator.from_config(client, OrchestrationConfig(**values), sleep=no_sleep)


def test_all_segments_succeed(segment_files, scripted_client, no_sleep) -> None:
    client = scripted_client(lambda audio, _n: {"text": f"segment {_index(audio)} speech"})
    segments = segment_files(3)

    result = asyncio.run(_orchestrator(client, no_sleep).run(segments))

    assert [c.text for c in result.captions] == [
        "segment 0 speech",
        "segment 1 speech",
        "segment 2 speech",
    ]
    assert [c.start for c in result.captions] == [0.0, 30.0, 60.0]
    assert all(run.state is SegmentState.SUCCEEDED for run in result.runs)
    assert all(run.attempts == 1 for run in result.runs)
    assert result.failed_count == 0


def test_segment_is_retried_with_linear_backoff(segment_files, scripted_client, sleeps, no_sleep) -> None:
    """An attempt that returns no text is retried as a whole."""
    client = scripted_client(lambda _a, n: {"text": ""} if n < 3 else {"text": "finally"})

    result = asyncio.run(_orchestrator(client, no_sleep).run(segment_files(1)))

    assert result.runs[0].attempts == 3
    assert result.captions[0].text == "finally"
    assert sleeps == [2.0, 4.0]


def test_more_than_half_failing_fails_the_request(segment_files, scripted_client, no_sleep) -> None:
    """Six of ten segments failing exceeds the 50% threshold."""

    def responder(audio: bytes, _n: int):
        if _index(audio) < 6:
            return TranscriptionCallError("provider down", status_code=500)
        return {"text": "ok"}

    client = scripted_client(responder)

    with pytest.raises(TranscriptionFailedError) as excinfo:
        asyncio.run(_orchestrator(client, no_sleep).run(segment_files(10)))

    assert len(excinfo.value.failures) == 6
    assert excinfo.value.total == 10
    assert all(f.attempts == 3 for f in excinfo.value.failures)


def test_partial_failure_keeps_successful_segments(segment_files, scripted_client, no_sleep) -> None:
    """Four of ten failing is tolerated and leaves a gap in the track."""

    def responder(audio: bytes, _n: int):
        if _index(audio) in {1, 3, 5, 7}:
            return TranscriptionCallError("provider down", status_code=500)
        return {"text": f"part {_index(audio)}"}

    result = asyncio.run(_orchestrator(scripted_client(responder), no_sleep).run(segment_files(10)))

    assert result.failed_count == 4
    assert result.failure_ratio == pytest.approx(0.4)
    assert [c.text for c in result.captions] == ["part 0", "part 2", "part 4", "part 6", "part 8", "part 9"]
    failed = [run for run in result.runs if run.state is SegmentState.FAILED]
    assert [run.segment.index for run in failed] == [1, 3, 5, 7]
    assert all(isinstance(run.error, TranscriptionCallError) for run in failed)


def test_silence_counts_as_failure(segment_files, scripted_client, no_sleep) -> None:
    client = scripted_client(lambda audio, _n: {"text": ""} if _index(audio) == 0 else {"text": "hi"})

    result = asyncio.run(_orchestrator(client, no_sleep).run(segment_files(3)))

    assert result.failed_count == 1
    assert isinstance(result.failures[0].cause, EmptyTranscriptError)


def test_configuration_error_is_never_retried(segment_files, scripted_client, no_sleep) -> None:
    client = scripted_client(lambda _a, _n: ConfigurationError("HUGGINGFACE_API_KEY is not configured"))

    with pytest.raises(ConfigurationError):
        asyncio.run(_orchestrator(client, no_sleep).run(segment_files(3)))

    assert len(client.calls) == 1


def test_no_segments_is_a_failure(scripted_client, no_sleep) -> None:
    client = scripted_client(lambda _a, _n: {"text": "unused"})

    with pytest.raises(TranscriptionFailedError, match="No captions"):
        asyncio.run(_orchestrator(client, no_sleep).run([]))


def test_language_and_content_type_are_forwarded(segment_files, scripted_client, no_sleep) -> None:
    client = scripted_client(lambda _a, _n: {"text": "namaste"})
    orchestrator = SegmentOrchestrator(client, segment_retry_policy(), language="hi", sleep=no_sleep)

    asyncio.run(orchestrator.run(segment_files(2)))

    assert [(lang, ctype) for _, lang, ctype in client.calls] == [
        ("hi", "audio/wav"),
        ("hi", "audio/wav"),
    ]
    assert [audio for audio, _, _ in client.calls] == [b"segment-0", b"segment-1"]


def test_concurrent_run_covers_every_segment(segment_files, no_sleep) -> None:
    """With a worker pool every segment still contributes exactly once."""
    in_flight = 0
    peak = 0

    class SlowClient:
        async def transcribe(self, audio, language=None, content_type="audio/wav"):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0)
            in_flight -= 1
            return {"text": f"chunk {_index(audio)}"}

    orchestrator = _orchestrator(SlowClient(), no_sleep, max_concurrency=3)

    result = asyncio.run(orchestrator.run(segment_files(7)))

    assert sorted(c.text for c in result.captions) == sorted(f"chunk {i}" for i in range(7))
    assert 1 < peak <= 3


def test_concurrent_configuration_error_propagates(segment_files, scripted_client, no_sleep) -> None:
    client = scripted_client(lambda _a, _n: ConfigurationError("bad key"))

    with pytest.raises(ConfigurationError):
        asyncio.run(_orchestrator(client, no_sleep, max_concurrency=4).run(segment_files(4)))


def test_rejected_key_aborts_before_other_segments(segment_files, sleeps, no_sleep) -> None:
    """A 401 from the provider stops the whole request after a single call."""
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(401, json={"error": "Invalid credentials"})

    config = STTConfig(
        provider="huggingface",
        api_key="hf_test_key_0123456789",
        endpoint="https://stt.test/models/whisper",
    )

    async def _run() -> None:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = TranscriptionClient(config, http, sleep=no_sleep)
            await _orchestrator(client, no_sleep).run(segment_files(2))

    with pytest.raises(ConfigurationError, match="rejected the API key"):
        asyncio.run(_run())

    assert len(calls) == 1
    assert sleeps == []
