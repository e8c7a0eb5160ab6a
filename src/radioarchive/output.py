#!/usr/bin/python3

import collections
import functools
import pathlib

import colorama.ansi
import msgspec

from .models import messages as msgtypes
from .models.manifest import MediaType


def _enc_hook(obj: object) -> object:
    if isinstance(obj, pathlib.PurePath):
        return str(obj)
    raise NotImplementedError(f"Objects of type {type(obj)} are not supported")


class BaseMessageHandler(msgspec.Struct):
    async def handle_message(self, msg: msgtypes.BaseMessage) -> None:
        raise NotImplementedError()


class JSONLMessageHandler(BaseMessageHandler, tag="jsonl"):
    # outputs messages as newline-delimited JSON
    # this is intended for applications that read this tool's standard output
    async def handle_message(self, msg: msgtypes.BaseMessage) -> None:
        print(msgspec.json.encode(msg, enc_hook=_enc_hook).decode("utf8"))


class DefaultMessageHandler(BaseMessageHandler, tag="default"):
    # outputs a single updating status line per active episode, plus a line per settled episode

    class EpisodeState(msgspec.Struct):
        audio_seq: int = 0
        audio_total: int = 0
        video_seq: int = 0
        video_total: int = 0
        total_downloaded: int = 0

        @property
        def human_total_size(self) -> str:
            return _sizeof_fmt(self.total_downloaded)

    current_episode: str = ""
    episodes: dict[str, EpisodeState] = msgspec.field(
        default_factory=functools.partial(collections.defaultdict, EpisodeState)
    )

    def print_segment_status_update(self) -> None:
        episode = self.episodes[self.current_episode]
        print(
            f"\r{colorama.ansi.clear_line()}"
            f"Episode {self.current_episode}: "
            f"Audio Segments: {episode.audio_seq}/{episode.audio_total}; "
            f"Video Segments: {episode.video_seq}/{episode.video_total}; "
            f"Total Downloaded: {episode.human_total_size}",
            end="",
            flush=True,
        )

    def _end_status_line(self) -> None:
        if self.current_episode:
            print()
            self.current_episode = ""

    async def handle_message(self, msg: msgtypes.BaseMessage) -> None:
        match msg:
            case msgtypes.StringMessage():
                self._end_status_line()
                print(msg.text)
            case msgtypes.EpisodeQueuedMessage():
                self._end_status_line()
                print(f"Queued episode {msg.episode_id} ({msg.url})")
            case msgtypes.RepresentationSelectionMessage():
                self._end_status_line()
                if msg.media_type == MediaType.VIDEO and msg.height:
                    print(
                        f"Episode {msg.episode_id}: video format {int(msg.height)}p "
                        f"({msg.num_segments} segments)"
                    )
                else:
                    print(
                        f"Episode {msg.episode_id}: {msg.media_type} format "
                        f"({msg.num_segments} segments)"
                    )
            case msgtypes.DownloadStreamJobStartedMessage():
                episode = self.episodes[msg.episode_id]
                if msg.media_type == MediaType.AUDIO:
                    episode.audio_total = msg.total_segments
                else:
                    episode.video_total = msg.total_segments
            case msgtypes.SegmentMessage():
                episode = self.episodes[msg.episode_id]
                # segments are reported zero-indexed
                if msg.media_type == MediaType.AUDIO:
                    episode.audio_seq = msg.current_segment + 1
                else:
                    episode.video_seq = msg.current_segment + 1
                episode.total_downloaded += msg.segment_size
                self.current_episode = msg.episode_id
                self.print_segment_status_update()
            case msgtypes.DownloadStreamJobEndedMessage():
                self._end_status_line()
                print(f"Download job finished for {msg.episode_id} type {msg.media_type}")
            case msgtypes.StreamMuxMessage():
                self._end_status_line()
                print(f"Muxing episode {msg.episode_id} to '{msg.output_path}'")
            case msgtypes.StreamMuxFailureMessage():
                self._end_status_line()
                print(
                    f"Mux failed for episode {msg.episode_id} "
                    f"(exit code {msg.ffmpeg_exit_code}); '{msg.output_path}' may be incomplete"
                )
                if msg.reason:
                    print(msg.reason)
            case msgtypes.WorkdirCleanupFailureMessage():
                self._end_status_line()
                print(f"Failed to remove working directory '{msg.path}': {msg.reason}")
            case msgtypes.DownloadJobFinishedMessage():
                self._end_status_line()
                print(f"[ OK ] {msg.episode_id}: {msg.output_path}")
                self.episodes.pop(msg.episode_id, None)
            case msgtypes.DownloadJobFailedMessage():
                self._end_status_line()
                print(f"[FAIL] {msg.episode_id}: {msg.error_type}: {msg.reason}")
                self.episodes.pop(msg.episode_id, None)
            case _:
                pass


def _sizeof_fmt(num: int | float, suffix: str = "B") -> str:
    # https://stackoverflow.com/a/1094933
    for unit in ("", "Ki", "Mi", "Gi", "Ti", "Pi", "Ei", "Zi"):
        if abs(num) < 1024.0:
            return f"{num:3.2f}{unit}{suffix}"
        num /= 1024.0
    return f"{num:.2f}Yi{suffix}"


CLIMessageHandlers = JSONLMessageHandler | DefaultMessageHandler
