#!/usr/bin/python3

"""
Exceptions raised while acquiring an episode.

Each of these aborts the episode it was raised for; the batch runner reports it against that
episode and continues with the rest.
"""


class RadioArchiveError(Exception):
    """Base class for all episode acquisition failures."""


class TransportFailure(RadioArchiveError):
    """
    Network-layer failure on the episode page, manifest or a segment.  The underlying httpx
    exception, if any, is available as __cause__.
    """


class SegmentFetchFailed(TransportFailure):
    """A segment request completed with a non-success status."""

    def __init__(self, media_type: str, index: int, url: str, status_code: int):
        super().__init__(
            f"{media_type} segment {index} returned HTTP {status_code} ({url})"
        )
        self.media_type = media_type
        self.index = index
        self.url = url
        self.status_code = status_code


class ManifestNotFound(RadioArchiveError):
    """No inline script on the episode page contained a manifest location."""


class ManifestDecodeFailure(RadioArchiveError):
    """The manifest document was fetched but could not be decoded."""


class NoAudioAvailable(RadioArchiveError):
    pass


class NoVideoAvailable(RadioArchiveError):
    pass


class MalformedInitSegment(RadioArchiveError):
    """The base64 initialization block of a representation is invalid."""


class MuxerNotFound(RadioArchiveError):
    pass


class MuxFailed(RadioArchiveError):
    def __init__(self, exit_code: int | None, stderr: str = ""):
        super().__init__(f"muxer exited with status {exit_code}")
        self.exit_code = exit_code
        self.stderr = stderr


class InvalidOperatorSelection(RadioArchiveError):
    """The operator's episode selection could not be interpreted."""
