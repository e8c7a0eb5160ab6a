#!/usr/bin/python3

import pathlib
import re

import msgspec

from ..models.episode import Episode

# table to remove illegal characters on Windows
sanitize_table = str.maketrans({c: "_" for c in r'<>:"/\|?*'})

DEFAULT_OUTPUT_TEMPLATE = "%(date)s-%(number)s"

# keep generated names well below the common 255 byte filename limit
MAX_BASENAME_BYTES = 192

_PLACEHOLDER = re.compile(r"%\((\w+)\)s")


def _string_byte_trim(input: str, length: int) -> str:
    """
    Trims a string using a byte limit, while ensuring that it is still valid Unicode.
    https://stackoverflow.com/a/70304695
    """
    bytes_ = input.encode()
    try:
        return bytes_[:length].decode()
    except UnicodeDecodeError as err:
        return bytes_[: err.start].decode()


class OutputPathTemplateVars(msgspec.Struct, kw_only=True):
    number: str
    title: str
    date: str
    year: str
    month: str
    day: str

    @classmethod
    def from_episode(cls, episode: Episode) -> "OutputPathTemplateVars":
        return cls(
            number=str(episode.number),
            title=episode.title,
            date=episode.date.strftime("%Y%m%d"),
            year=f"{episode.date.year:04d}",
            month=f"{episode.date.month:02d}",
            day=f"{episode.date.day:02d}",
        )


class OutputPathTemplate(str):
    """
    Output filename template.  Only placeholders in the form '%(key)s' are accepted; see
    OutputPathTemplateVars for the available keys.
    """

    def __new__(cls, value: str) -> "OutputPathTemplate":
        fields = msgspec.structs.fields(OutputPathTemplateVars)
        valid_keys = {f.name for f in fields}
        for key in _PLACEHOLDER.findall(value):
            if key not in valid_keys:
                raise ValueError(f"Unknown output template key '{key}'")
        return super().__new__(cls, value)

    def to_path(self, vars: OutputPathTemplateVars, suffix: str) -> pathlib.Path:
        values = msgspec.structs.asdict(vars)
        basename = _PLACEHOLDER.sub(lambda m: values[m.group(1)], self).translate(sanitize_table)
        return pathlib.Path(_string_byte_trim(basename, MAX_BASENAME_BYTES) + suffix)
