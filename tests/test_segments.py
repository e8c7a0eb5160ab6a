#!/usr/bin/python3

import asyncio
import io
import random

import httpx
import pytest
from conftest import ROOT_URL, FakeServer, b64
from radioarchive.downloaders.vimeo._segments import (
    num_parallel_downloads_ctx,
    write_segments,
)
from radioarchive.downloaders.vimeo._status import status_queue_ctx
from radioarchive.errors import MalformedInitSegment, SegmentFetchFailed, TransportFailure
from radioarchive.models import messages
from radioarchive.models.manifest import MediaType, Segment, SegmentedStream

BASE_URL = ROOT_URL + "video/720p/chop/"


def _stream(num_segments: int, init: bytes = b"INIT") -> SegmentedStream:
    return SegmentedStream(
        media_type=MediaType.VIDEO,
        base_url=BASE_URL,
        init_segment=b64(init),
        segments=[
            Segment(url=f"segment-{n}.m4s", start=n * 6.0, end=(n + 1) * 6.0)
            for n in range(num_segments)
        ],
    )


def _serve_segments(server: FakeServer, num_segments: int) -> list[bytes]:
    contents = [f"<segment {n}>".encode() * (n + 1) for n in range(num_segments)]
    for n, content in enumerate(contents):
        server.routes[f"{BASE_URL}segment-{n}.m4s"] = content
    return contents


def _download(
    server: FakeServer, stream: SegmentedStream, num_parallel_downloads: int = 1
) -> tuple[bytes, list[messages.BaseMessage], Exception | None]:
    # returns the bytes written, the status messages reported and any exception raised
    sink = io.BytesIO()
    reported: list[messages.BaseMessage] = []

    async def _run() -> Exception | None:
        queue: asyncio.Queue = asyncio.Queue()
        status_queue_ctx.set(queue)
        num_parallel_downloads_ctx.set(num_parallel_downloads)
        try:
            async with server.client() as client:
                await write_segments(client, stream, sink, "ep")
        except Exception as exc:
            return exc
        finally:
            while not queue.empty():
                reported.append(queue.get_nowait())
        return None

    error = asyncio.run(_run())
    return sink.getvalue(), reported, error


def test_reconstructs_stream_in_manifest_order(server: FakeServer):
    contents = _serve_segments(server, 4)
    data, _, error = _download(server, _stream(4))

    assert error is None
    assert data == b"INIT" + b"".join(contents)
    assert server.requested_urls == [f"{BASE_URL}segment-{n}.m4s" for n in range(4)]


@pytest.mark.parametrize("num_parallel_downloads", [1, 3, 8])
def test_write_order_independent_of_latency(server: FakeServer, num_parallel_downloads: int):
    contents = _serve_segments(server, 12)
    rng = random.Random(num_parallel_downloads)
    for n in range(12):
        server.delays[f"{BASE_URL}segment-{n}.m4s"] = rng.uniform(0, 0.02)

    first, _, error = _download(server, _stream(12), num_parallel_downloads)
    assert error is None
    assert first == b"INIT" + b"".join(contents)

    # identical input reproduces identical output
    second, _, _ = _download(server, _stream(12), num_parallel_downloads)
    assert second == first


def test_failed_segment_stops_stream(server: FakeServer):
    contents = _serve_segments(server, 5)
    server.routes[f"{BASE_URL}segment-2.m4s"] = 404

    data, reported, error = _download(server, _stream(5))

    assert isinstance(error, SegmentFetchFailed)
    assert isinstance(error, TransportFailure)
    assert error.index == 2
    assert error.status_code == 404

    # nothing past the failing segment is requested; everything before it is written
    assert server.requested_urls == [f"{BASE_URL}segment-{n}.m4s" for n in range(3)]
    assert data == b"INIT" + contents[0] + contents[1]
    assert not any(isinstance(m, messages.DownloadStreamJobEndedMessage) for m in reported)


def test_failed_segment_with_pipelining_keeps_prefix(server: FakeServer):
    contents = _serve_segments(server, 6)
    server.routes[f"{BASE_URL}segment-3.m4s"] = 500

    data, _, error = _download(server, _stream(6), num_parallel_downloads=4)

    assert isinstance(error, SegmentFetchFailed)
    assert error.index == 3
    assert data == b"INIT" + b"".join(contents[:3])


def test_connection_error_is_transport_failure(server: FakeServer):
    _serve_segments(server, 2)

    def _refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    server.routes[f"{BASE_URL}segment-1.m4s"] = _refuse

    data, _, error = _download(server, _stream(2))
    assert type(error) is TransportFailure
    assert isinstance(error.__cause__, httpx.ConnectError)


def test_malformed_init_segment(server: FakeServer):
    _serve_segments(server, 2)
    stream = _stream(2)
    stream = SegmentedStream(
        media_type=stream.media_type,
        base_url=stream.base_url,
        init_segment="not*valid*base64",
        segments=stream.segments,
    )

    data, _, error = _download(server, stream)
    assert isinstance(error, MalformedInitSegment)
    assert data == b""
    assert server.requests == []


def test_progress_messages(server: FakeServer):
    contents = _serve_segments(server, 3)
    _, reported, error = _download(server, _stream(3))

    assert error is None
    started, *segments, ended = reported
    assert started == messages.DownloadStreamJobStartedMessage("ep", MediaType.VIDEO, 3)
    assert [m.current_segment for m in segments] == [0, 1, 2]
    assert [m.segment_size for m in segments] == [len(c) for c in contents]
    assert all(m.total_segments == 3 for m in segments)
    assert ended == messages.DownloadStreamJobEndedMessage("ep", MediaType.VIDEO)


def test_empty_stream_writes_only_init(server: FakeServer):
    data, reported, error = _download(server, _stream(0, init=b"\x00\x01\x02"))

    assert error is None
    assert data == b"\x00\x01\x02"
    assert server.requests == []
    assert [type(m) for m in reported] == [
        messages.DownloadStreamJobStartedMessage,
        messages.DownloadStreamJobEndedMessage,
    ]
