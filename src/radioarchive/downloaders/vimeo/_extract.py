#!/usr/bin/python3

import html.parser
import re
import urllib.parse
from typing import NamedTuple, Protocol

import httpx
import msgspec

from ...errors import ManifestDecodeFailure, ManifestNotFound, TransportFailure
from ...models.manifest import Manifest


class ManifestLocation(NamedTuple):
    manifest_url: str

    # stream base paths in the manifest are relative to this
    root_url: str


class ManifestLocator(Protocol):
    def locate(self, script: str) -> ManifestLocation | None: ...


class MasterJsonLocator:
    """
    Recovers the master.json location from the player configuration script.

    The URL is split around its "video" path component; the portion before it is the root
    that audio and video base paths are resolved against.
    """

    pattern = re.compile(r'"(https://[^"]+)(video)([^"]+master.json[?][^",]+)"')

    def locate(self, script: str) -> ManifestLocation | None:
        match = self.pattern.search(script)
        if not match:
            return None
        root, video, rest = match.groups()
        return ManifestLocation(manifest_url=root + video + rest, root_url=root)


class BodyScriptExtractor(html.parser.HTMLParser):
    # collects the contents of inline scripts within the document body
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.scripts: list[str] = []
        self.in_body = False
        self.in_script = False
        self._current: list[str] = []

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag == "body":
            self.in_body = True
        elif tag == "script" and self.in_body:
            self.in_script = True
            self._current = []

    def handle_endtag(self, tag: str) -> None:
        if tag == "body":
            self.in_body = False
        elif tag == "script" and self.in_script:
            self.in_script = False
            if self._current:
                self.scripts.append("".join(self._current))

    def handle_data(self, data: str) -> None:
        if self.in_script:
            self._current.append(data)


def extract_manifest_location(
    page: str, page_url: str, locator: ManifestLocator | None = None
) -> ManifestLocation:
    """
    Returns the manifest location from the first inline body script the locator matches.
    """
    locator = locator or MasterJsonLocator()

    extractor = BodyScriptExtractor()
    extractor.feed(page)
    extractor.close()

    for script in extractor.scripts:
        location = locator.locate(script)
        if location:
            return ManifestLocation(
                urllib.parse.urljoin(page_url, location.manifest_url),
                urllib.parse.urljoin(page_url, location.root_url),
            )
    raise ManifestNotFound(f"No manifest location found in {page_url}")


async def fetch_manifest(client: httpx.AsyncClient, manifest_url: str) -> Manifest:
    try:
        resp = await client.get(manifest_url)
        resp.raise_for_status()
    except httpx.HTTPError as exc:
        raise TransportFailure(f"Failed to retrieve manifest: {exc}") from exc

    try:
        return Manifest.from_json(resp.content)
    except (msgspec.DecodeError, msgspec.ValidationError) as exc:
        raise ManifestDecodeFailure(f"Failed to decode manifest {manifest_url}: {exc}") from exc


async def extract_manifest(
    client: httpx.AsyncClient,
    page: str,
    page_url: str,
    locator: ManifestLocator | None = None,
) -> tuple[Manifest, str]:
    # returns the decoded manifest and the root URL for its streams
    location = extract_manifest_location(page, page_url, locator)
    manifest = await fetch_manifest(client, location.manifest_url)
    return manifest, location.root_url
