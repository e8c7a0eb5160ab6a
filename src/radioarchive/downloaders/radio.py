#!/usr/bin/python3

import asyncio
import pathlib

import httpx
import msgspec

from ..errors import InvalidOperatorSelection
from ..listing import fetch_episodes
from ..models.episode import Episode
from ..output import BaseMessageHandler
from ..selection import select_items
from ..util.paths import DEFAULT_OUTPUT_TEMPLATE, OutputPathTemplate, OutputPathTemplateVars
from .vimeo import (
    DEFAULT_USER_AGENT,
    EpisodeOutcome,
    StatusManager,
    acquire_episode,
    acquire_episodes,
    num_parallel_downloads_ctx,
    resolve_muxer,
)


def _print_listing(episodes: list[Episode]) -> None:
    width = len(str(len(episodes)))
    for n, episode in enumerate(episodes, 1):
        print(f"{n:>{width}}. #{episode.number} {episode.date.isoformat()} {episode.title}")


def _prompt_selection() -> str:
    try:
        return input("Episodes to download (e.g. 1,3,5-7 or 'all'): ")
    except EOFError:
        raise InvalidOperatorSelection("No episode selection given on standard input") from None


class RadioArchiveDownloader(msgspec.Struct, kw_only=True):
    url: str
    episodes: str | None = None
    list_episodes: bool = False
    dry_run: bool = False
    staging_directory: pathlib.Path | None = None
    output_directory: pathlib.Path | None = None
    output_template: str = DEFAULT_OUTPUT_TEMPLATE
    ffmpeg_path: pathlib.Path | None = None
    num_parallel_downloads: int = 1
    max_concurrent_episodes: int = 0
    user_agent: str = DEFAULT_USER_AGENT
    handlers: list[BaseMessageHandler] = msgspec.field(default_factory=list)

    async def _acquire(self, episode: Episode) -> pathlib.Path:
        template = OutputPathTemplate(self.output_template)
        filename = template.to_path(OutputPathTemplateVars.from_episode(episode), ".mp4")
        return await acquire_episode(
            episode.url,
            episode.referer,
            str(filename),
            self.output_directory,
            episode_id=episode.label,
            staging_directory=self.staging_directory,
            ffmpeg_path=self.ffmpeg_path,
            user_agent=self.user_agent,
        )

    async def async_run(self) -> list[EpisodeOutcome]:
        # fail on a bad template or missing muxer before anything is fetched
        OutputPathTemplate(self.output_template)
        if not (self.list_episodes or self.dry_run):
            resolve_muxer(self.ffmpeg_path)

        async with httpx.AsyncClient(
            follow_redirects=True, headers={"User-Agent": self.user_agent}
        ) as client:
            listing = await fetch_episodes(client, self.url)

        if self.list_episodes:
            _print_listing(listing)
            return []
        if not listing:
            print("No episodes found")
            return []

        selection = self.episodes
        if selection is None:
            _print_listing(listing)
            selection = await asyncio.to_thread(_prompt_selection)
        selected = select_items(listing, selection)

        if self.dry_run:
            for episode in selected:
                print(f"Would download {episode.label}: {episode.url}")
            return []

        num_parallel_downloads_ctx.set(self.num_parallel_downloads)
        async with StatusManager(self.handlers):
            return await acquire_episodes(selected, self._acquire, self.max_concurrent_episodes)

    def run(self) -> list[EpisodeOutcome]:
        return asyncio.run(self.async_run())
