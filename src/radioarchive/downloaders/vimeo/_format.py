#!/usr/bin/python3

import operator
from typing import Sequence

from ...errors import NoAudioAvailable, NoVideoAvailable
from ...models.manifest import AudioRepresentation, Manifest, VideoRepresentation


def select_audio(candidates: Sequence[AudioRepresentation]) -> AudioRepresentation:
    # the manifest offers no comparable quality metric for audio, so take the first one
    if not candidates:
        raise NoAudioAvailable("Manifest contains no audio representations")
    return candidates[0]


def select_video(candidates: Sequence[VideoRepresentation]) -> VideoRepresentation:
    # max() returns the first of equally tall candidates
    if not candidates:
        raise NoVideoAvailable("Manifest contains no video representations")
    return max(candidates, key=operator.attrgetter("height"))


def select_representations(
    manifest: Manifest,
) -> tuple[AudioRepresentation, VideoRepresentation]:
    assert manifest.audio is not None and manifest.video is not None
    return select_audio(manifest.audio), select_video(manifest.video)
