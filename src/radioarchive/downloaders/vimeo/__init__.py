#!/usr/bin/python3

import asyncio
import contextlib
import dataclasses
import datetime
import pathlib
import shutil
import tempfile
from typing import Awaitable, Callable, Iterator, Sequence

import httpx

from ...errors import MuxerNotFound, MuxFailed, TransportFailure
from ...models import messages as messages
from ...models.episode import Episode
from ...models.manifest import MediaType, SegmentedStream
from ._extract import ManifestLocator, extract_manifest
from ._extract import MasterJsonLocator as MasterJsonLocator
from ._format import select_representations
from ._segments import num_parallel_downloads_ctx as num_parallel_downloads_ctx
from ._segments import write_segments
from ._status import StatusManager as StatusManager
from ._status import report

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0 Safari/537.36"
)


def resolve_muxer(ffmpeg_path: pathlib.Path | str | None = None) -> str:
    program = str(ffmpeg_path) if ffmpeg_path else "ffmpeg"
    resolved = shutil.which(program)
    if not resolved:
        raise MuxerNotFound(f"Could not find muxer executable '{program}'")
    return resolved


@contextlib.contextmanager
def _private_workdir(staging_directory: pathlib.Path | None = None) -> Iterator[pathlib.Path]:
    # holds the raw streams for one episode; removed on every exit path
    if staging_directory:
        staging_directory.mkdir(parents=True, exist_ok=True)
    workdir = pathlib.Path(tempfile.mkdtemp(prefix="radioarchive-", dir=staging_directory))
    try:
        yield workdir
    finally:
        try:
            shutil.rmtree(workdir)
        except OSError as exc:
            report(messages.WorkdirCleanupFailureMessage(workdir, str(exc)))


async def fetch_episode_page(client: httpx.AsyncClient, url: str, referer: str) -> str:
    # the player host refuses to serve embeds without the embedding page as referer
    try:
        resp = await client.get(url, headers={"Referer": referer})
        resp.raise_for_status()
    except httpx.HTTPError as exc:
        raise TransportFailure(f"Failed to retrieve episode page {url}: {exc}") from exc
    return resp.text


async def download_stream(
    client: httpx.AsyncClient,
    stream: SegmentedStream,
    output_path: pathlib.Path,
    episode_id: str,
) -> pathlib.Path:
    with output_path.open("wb") as sink:
        await write_segments(client, stream, sink, episode_id)
    return output_path


async def mux_streams(
    program: str,
    audio_path: pathlib.Path,
    video_path: pathlib.Path,
    output_path: pathlib.Path,
) -> None:
    # the intermediate file suffixes are only there for ffmpeg's format detection
    proc = await asyncio.create_subprocess_exec(
        program,
        "-i",
        str(audio_path),
        "-i",
        str(video_path),
        "-acodec",
        "copy",
        "-vcodec",
        "copy",
        str(output_path),
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    _, stderr = await proc.communicate()
    if proc.returncode != 0:
        raise MuxFailed(proc.returncode, stderr.decode(errors="replace")[-2000:])


async def acquire_episode(
    url: str,
    referer: str,
    filename: str,
    output_directory: pathlib.Path | None = None,
    *,
    episode_id: str | None = None,
    staging_directory: pathlib.Path | None = None,
    ffmpeg_path: pathlib.Path | None = None,
    locator: ManifestLocator | None = None,
    client: httpx.AsyncClient | None = None,
    user_agent: str = DEFAULT_USER_AGENT,
) -> pathlib.Path:
    """
    Downloads the episode player page at the given URL, reconstructs its best audio and video
    streams, and muxes them into output_directory / filename.  Returns the muxed file's path.

    The muxed file is left in place if ffmpeg fails; everything else this function writes is
    removed before returning.
    """
    episode_id = episode_id or url

    # check this before any downloads so we don't waste bandwidth
    program = resolve_muxer(ffmpeg_path)

    output_path = (output_directory or pathlib.Path.cwd()) / filename

    async with contextlib.AsyncExitStack() as stack:
        if client is None:
            client = await stack.enter_async_context(
                httpx.AsyncClient(follow_redirects=True, headers={"User-Agent": user_agent})
            )

        page = await fetch_episode_page(client, url, referer)
        manifest, root_url = await extract_manifest(client, page, url, locator)
        audio, video = select_representations(manifest)

        report(
            messages.RepresentationSelectionMessage(
                episode_id, MediaType.AUDIO, len(audio.segments)
            )
        )
        report(
            messages.RepresentationSelectionMessage(
                episode_id, MediaType.VIDEO, len(video.segments), video.height
            )
        )

        workdir = stack.enter_context(_private_workdir(staging_directory))
        prefix = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
        audio_path = workdir / f"{prefix}.mp3"
        video_path = workdir / f"{prefix}.mp4"

        # a failing stream does not stop its sibling; both are settled before checking
        results = await asyncio.gather(
            download_stream(client, audio.resolve(root_url), audio_path, episode_id),
            download_stream(client, video.resolve(root_url), video_path, episode_id),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result

        output_path.parent.mkdir(parents=True, exist_ok=True)
        report(messages.StreamMuxMessage(episode_id, [audio_path, video_path], output_path))
        try:
            await mux_streams(program, audio_path, video_path, output_path)
        except MuxFailed as exc:
            report(
                messages.StreamMuxFailureMessage(
                    episode_id, output_path, exc.stderr or None, exc.exit_code
                )
            )
            raise
    return output_path


@dataclasses.dataclass
class EpisodeOutcome:
    episode: Episode
    output_path: pathlib.Path | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def acquire_episodes(
    episodes: Sequence[Episode],
    acquire: Callable[[Episode], Awaitable[pathlib.Path]],
    max_concurrent_episodes: int = 0,
) -> list[EpisodeOutcome]:
    """
    Runs one task per episode and returns their outcomes in order of completion.

    A failing episode is recorded in its outcome and never affects the others.  If
    max_concurrent_episodes is nonzero, at most that many episodes are acquired at once.
    """
    semaphore = asyncio.Semaphore(max_concurrent_episodes) if max_concurrent_episodes else None

    async def _run(episode: Episode) -> EpisodeOutcome:
        async with semaphore or contextlib.nullcontext():
            report(messages.EpisodeQueuedMessage(episode.label, episode.url))
            try:
                output_path = await acquire(episode)
            except Exception as exc:
                report(
                    messages.DownloadJobFailedMessage(
                        episode.label, type(exc).__name__, str(exc)
                    )
                )
                return EpisodeOutcome(episode, error=exc)
        report(messages.DownloadJobFinishedMessage(episode.label, output_path))
        return EpisodeOutcome(episode, output_path=output_path)

    tasks = [asyncio.create_task(_run(episode)) for episode in episodes]
    return [await task for task in asyncio.as_completed(tasks)]
