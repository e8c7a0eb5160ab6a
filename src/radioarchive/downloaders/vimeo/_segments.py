#!/usr/bin/python3

import asyncio
import base64
import binascii
import collections
import contextlib
import itertools
from contextvars import ContextVar
from typing import AsyncIterator, BinaryIO

import httpx

from ...errors import MalformedInitSegment, SegmentFetchFailed, TransportFailure
from ...models import messages as messages
from ...models.manifest import Segment, SegmentedStream
from ._status import report

# number of segment requests allowed in flight for a single stream
# the default of 1 fetches strictly one segment after another
num_parallel_downloads_ctx: ContextVar[int] = ContextVar("num_parallel_downloads", default=1)


def decode_init_segment(stream: SegmentedStream) -> bytes:
    try:
        return base64.b64decode(stream.init_segment, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MalformedInitSegment(
            f"Invalid init segment for {stream.media_type} stream at {stream.base_url}"
        ) from exc


async def _fetch_segment(
    client: httpx.AsyncClient, stream: SegmentedStream, index: int, segment: Segment
) -> bytes:
    url = stream.segment_url(segment)
    try:
        resp = await client.get(url)
    except httpx.HTTPError as exc:
        raise TransportFailure(
            f"Failed to retrieve {stream.media_type} segment {index}: {exc!r}"
        ) from exc
    if not resp.is_success:
        raise SegmentFetchFailed(stream.media_type, index, url, resp.status_code)
    return resp.content


async def segment_iterator(
    client: httpx.AsyncClient, stream: SegmentedStream
) -> AsyncIterator[tuple[int, bytes]]:
    """
    Yields (index, content) for each segment of the stream in manifest order.

    Up to num_parallel_downloads_ctx requests are issued ahead of the consumer; results are
    always yielded in order.  If any request fails the exception is raised at its position and
    the requests queued behind it are cancelled.
    """
    num_parallel_downloads = max(1, num_parallel_downloads_ctx.get())

    segments = enumerate(stream.segments)
    reqs: collections.deque[tuple[int, asyncio.Task[bytes]]] = collections.deque()

    try:
        while True:
            # top up the in-flight requests; once caught up this only requests one segment
            for index, segment in itertools.islice(
                segments, num_parallel_downloads - len(reqs)
            ):
                reqs.append(
                    (index, asyncio.create_task(_fetch_segment(client, stream, index, segment)))
                )
            if not reqs:
                return

            index, req_task = reqs.popleft()
            yield index, await req_task
    finally:
        for _, req_task in reqs:
            req_task.cancel()
        await asyncio.gather(*(req_task for _, req_task in reqs), return_exceptions=True)


async def write_segments(
    client: httpx.AsyncClient,
    stream: SegmentedStream,
    sink: BinaryIO,
    episode_id: str,
) -> int:
    """
    Reconstructs a stream into the given sink.  Returns the number of bytes written.
    """
    total_segments = len(stream.segments)
    report(
        messages.DownloadStreamJobStartedMessage(episode_id, stream.media_type, total_segments)
    )

    init_segment = decode_init_segment(stream)
    await asyncio.to_thread(sink.write, init_segment)
    written = len(init_segment)

    async with contextlib.aclosing(segment_iterator(client, stream)) as frags:
        async for index, content in frags:
            # each segment is written before the next one is taken from the iterator
            await asyncio.to_thread(sink.write, content)
            written += len(content)
            report(
                messages.SegmentMessage(
                    episode_id, stream.media_type, index, total_segments, len(content)
                )
            )

    await asyncio.to_thread(sink.flush)
    report(messages.DownloadStreamJobEndedMessage(episode_id, stream.media_type))
    return written
