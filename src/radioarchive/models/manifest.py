#!/usr/bin/python3

import enum
import urllib.parse

import msgspec


class MediaType(enum.StrEnum):
    VIDEO = "video"
    AUDIO = "audio"


class Segment(msgspec.Struct):
    url: str

    # offsets in seconds; only used for display, the bytes come from the url
    start: float = 0.0
    end: float = 0.0


class SegmentedStream(msgspec.Struct, frozen=True, kw_only=True):
    """
    A single elementary stream ready for download.

    The reconstructed stream is the decoded init segment followed by the body of every
    segment (resolved against base_url) in list order.
    """

    media_type: MediaType
    base_url: str
    init_segment: str
    segments: list[Segment]

    def segment_url(self, segment: Segment) -> str:
        return urllib.parse.urljoin(self.base_url, segment.url)


class AudioRepresentation(msgspec.Struct, kw_only=True):
    base_url: str
    init_segment: str
    segments: list[Segment] = msgspec.field(default_factory=list)

    def resolve(self, root_url: str) -> SegmentedStream:
        # audio paths are given relative to the video directory
        return SegmentedStream(
            media_type=MediaType.AUDIO,
            base_url=urllib.parse.urljoin(root_url, self.base_url.removeprefix("../")),
            init_segment=self.init_segment,
            segments=self.segments,
        )


class VideoRepresentation(msgspec.Struct, kw_only=True):
    base_url: str
    init_segment: str
    height: float = 0.0
    segments: list[Segment] = msgspec.field(default_factory=list)

    def resolve(self, root_url: str) -> SegmentedStream:
        return SegmentedStream(
            media_type=MediaType.VIDEO,
            base_url=urllib.parse.urljoin(root_url, f"video/{self.base_url}"),
            init_segment=self.init_segment,
            segments=self.segments,
        )


class Manifest(msgspec.Struct):
    # container for the master.json document; unknown keys are ignored
    audio: list[AudioRepresentation] | None = None
    video: list[VideoRepresentation] | None = None

    def __post_init__(self) -> None:
        # the document uses null for "no representations of this kind"
        if self.audio is None:
            self.audio = []
        if self.video is None:
            self.video = []

    @classmethod
    def from_json(cls, content: bytes | str) -> "Manifest":
        return msgspec.json.decode(content, type=cls)
