#!/usr/bin/python3

"""
Scrapes the programme's archive page for the list of broadcast episodes.
"""

import datetime
import html.parser
import operator
import re
import urllib.parse

import httpx

from .errors import TransportFailure
from .models.episode import Episode

_DATE_PATTERN = re.compile(r"(\d{4})-(\d{2})-(\d{2})")

# the episode number is the first run of at least three digits in the title
_NUMBER_PATTERN = re.compile(r"\d{3,}")


class EpisodeListExtractor(html.parser.HTMLParser):
    """
    Collects the raw title, datetime and player URL of each archive entry.  Entries are
    <li class="col-sm-6"> elements with a div.title, a time element and an iframe within
    div.movie-player.
    """

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.entries: list[dict[str, str]] = []
        self._entry: dict[str, str] | None = None
        self._li_depth = 0
        self._div_classes: list[list[str]] = []

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        attr_map = dict(attrs)
        classes = (attr_map.get("class") or "").split()

        if tag == "li":
            if self._entry is not None:
                self._li_depth += 1
            elif "col-sm-6" in classes:
                self._entry = {}
                self._li_depth = 1
                self._div_classes = []
            return

        if self._entry is None:
            return

        match tag:
            case "div":
                self._div_classes.append(classes)
            case "time":
                if attr_map.get("datetime"):
                    self._entry.setdefault("datetime", attr_map["datetime"] or "")
            case "iframe":
                in_player = any("movie-player" in c for c in self._div_classes)
                if in_player and attr_map.get("src"):
                    self._entry.setdefault("src", attr_map["src"] or "")

    def handle_endtag(self, tag: str) -> None:
        if self._entry is None:
            return
        if tag == "div" and self._div_classes:
            self._div_classes.pop()
        elif tag == "li":
            self._li_depth -= 1
            if self._li_depth == 0:
                self.entries.append(self._entry)
                self._entry = None

    def handle_data(self, data: str) -> None:
        if self._entry is None or not self._div_classes:
            return
        if "title" in self._div_classes[-1]:
            self._entry["title"] = self._entry.get("title", "") + data


def _episode_from_entry(entry: dict[str, str], listing_url: str) -> Episode | None:
    title = entry.get("title", "").strip()
    date_match = _DATE_PATTERN.search(entry.get("datetime", ""))
    number_match = _NUMBER_PATTERN.search(title)
    src = entry.get("src")
    if not title or not date_match or not number_match or not src:
        return None

    try:
        date = datetime.date(*map(int, date_match.groups()))
    except ValueError:
        return None

    # embeds are normally given as protocol-relative URLs
    url = f"https:{src}" if src.startswith("//") else urllib.parse.urljoin(listing_url, src)

    return Episode(
        number=int(number_match.group()),
        date=date,
        title=title,
        url=url,
        referer=listing_url,
    )


def parse_episodes(page: str, listing_url: str) -> list[Episode]:
    """
    Returns the episodes listed on the page, newest first.  Entries with a missing or unparsable
    title, date or player are skipped.
    """
    extractor = EpisodeListExtractor()
    extractor.feed(page)
    extractor.close()

    episodes = [
        episode
        for episode in (_episode_from_entry(entry, listing_url) for entry in extractor.entries)
        if episode
    ]
    return sorted(episodes, key=operator.attrgetter("date"), reverse=True)


async def fetch_episodes(client: httpx.AsyncClient, listing_url: str) -> list[Episode]:
    try:
        resp = await client.get(listing_url)
        resp.raise_for_status()
    except httpx.HTTPError as exc:
        raise TransportFailure(f"Failed to retrieve episode listing: {exc}") from exc
    return parse_episodes(resp.text, listing_url)
