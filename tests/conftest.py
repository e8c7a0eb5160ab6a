#!/usr/bin/python3

import asyncio
import base64
import json

import httpx
import pytest

ROOT_URL = "https://skyfire.example.com/1700000000-abcdef/sep/"
MANIFEST_URL = ROOT_URL + "video/1111,2222/master.json?base64_init=1&query_string_ranges=1"
PLAYER_URL = "https://player.example.com/video/123456"
LISTING_URL = "https://radio.example.com/archive/"


def player_page(manifest_url: str = MANIFEST_URL) -> str:
    config = {
        "request": {
            "files": {
                "dash": {"cdns": {"akfire": {"url": manifest_url, "origin": "gcs"}}},
            }
        }
    }
    return (
        "<!DOCTYPE html><html><head><title>player</title>"
        "<script>var analytics = {};</script></head>"
        f"<body><div id='player'></div><script>window.playerConfig = {json.dumps(config)};"
        "</script></body></html>"
    )


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode()


class FakeServer:
    """
    Serves canned responses keyed by absolute URL.  A route may be bytes/str (200), an int
    status code, or a callable taking the request.  Every request is recorded in order.
    """

    def __init__(self):
        self.routes: dict[str, object] = {}
        self.requests: list[httpx.Request] = []
        self.delays: dict[str, float] = {}

    @property
    def requested_urls(self) -> list[str]:
        return [str(r.url) for r in self.requests]

    async def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        if url in self.delays:
            await asyncio.sleep(self.delays[url])
        route = self.routes.get(url)
        if route is None:
            return httpx.Response(404)
        if callable(route):
            route = route(request)
        if isinstance(route, httpx.Response):
            return route
        if isinstance(route, int):
            return httpx.Response(route)
        if isinstance(route, str):
            route = route.encode()
        return httpx.Response(200, content=route)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self._handle))


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def manifest_doc() -> dict:
    # one audio representation with two segments and two video representations
    return {
        "clip_id": "abcdef",
        "base_url": "../",
        "video": [
            {
                "id": "v480",
                "base_url": "480p/chop/",
                "height": 480,
                "init_segment": b64(b"V480-INIT"),
                "segments": [{"start": 0, "end": 6, "url": "segment-1.m4s", "size": 5}],
            },
            {
                "id": "v720",
                "base_url": "720p/chop/",
                "height": 720,
                "init_segment": b64(b"V720-INIT|"),
                "segments": [{"start": 0, "end": 6, "url": "segment-1.m4s", "size": 5}],
            },
        ],
        "audio": [
            {
                "id": "a128",
                "base_url": "../audio/128k/chop/",
                "init_segment": b64(b"AUDIO-INIT|"),
                "segments": [
                    {"start": 0, "end": 6, "url": "segment-1.m4s"},
                    {"start": 6, "end": 12, "url": "segment-2.m4s"},
                ],
            }
        ],
    }


@pytest.fixture
def episode_server(server: FakeServer, manifest_doc: dict) -> FakeServer:
    # a fully populated episode: player page, manifest and every segment
    server.routes[PLAYER_URL] = player_page()
    server.routes[MANIFEST_URL] = json.dumps(manifest_doc)
    server.routes[ROOT_URL + "audio/128k/chop/segment-1.m4s"] = b"A1|"
    server.routes[ROOT_URL + "audio/128k/chop/segment-2.m4s"] = b"A2|"
    server.routes[ROOT_URL + "video/480p/chop/segment-1.m4s"] = b"V480-1"
    server.routes[ROOT_URL + "video/720p/chop/segment-1.m4s"] = b"V720-1"
    return server
