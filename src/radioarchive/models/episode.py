#!/usr/bin/python3

import datetime

import msgspec


class Episode(msgspec.Struct, frozen=True, kw_only=True):
    number: int
    date: datetime.date
    title: str

    # embedded player page for the episode
    url: str

    # page the player is embedded in; the player host rejects requests without it
    referer: str

    @property
    def label(self) -> str:
        return f"#{self.number} ({self.date.isoformat()})"
