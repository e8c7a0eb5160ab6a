#!/usr/bin/python3

import pathlib

import msgspec

from .manifest import MediaType


class BaseMessage(msgspec.Struct, tag=True):
    pass


class StringMessage(BaseMessage, tag="string-message"):
    # other properly-typed message structs should be used over this
    text: str


class EpisodeQueuedMessage(BaseMessage, tag="episode-queued"):
    episode_id: str
    url: str


class RepresentationSelectionMessage(BaseMessage, tag="representation-selection"):
    episode_id: str
    media_type: MediaType
    num_segments: int
    height: float | None = None


class DownloadStreamJobStartedMessage(BaseMessage, tag="download-stream-started"):
    episode_id: str
    media_type: MediaType
    total_segments: int


class SegmentMessage(BaseMessage, tag="segment"):
    episode_id: str
    media_type: MediaType
    current_segment: int
    total_segments: int
    segment_size: int


class DownloadStreamJobEndedMessage(BaseMessage, tag="download-stream-ended"):
    episode_id: str
    media_type: MediaType


class StreamMuxMessage(BaseMessage, tag="stream-mux"):
    episode_id: str
    input_paths: list[pathlib.Path]
    output_path: pathlib.Path


class StreamMuxFailureMessage(BaseMessage, tag="stream-mux-failure"):
    episode_id: str
    output_path: pathlib.Path
    reason: str | None = None
    ffmpeg_exit_code: int | None = None
    """
    Error code produced by ffmpeg.
    https://github.com/FFmpeg/FFmpeg/blob/a218cafe4d3be005ab0c61130f90db4d21afb5db/libavutil/error.c#L37-L107
    """


class WorkdirCleanupFailureMessage(BaseMessage, tag="workdir-cleanup-failure"):
    path: pathlib.Path
    reason: str


class DownloadJobFinishedMessage(BaseMessage, tag="download-finished"):
    episode_id: str
    output_path: pathlib.Path


class DownloadJobFailedMessage(BaseMessage, tag="download-failed"):
    episode_id: str
    error_type: str
    reason: str
