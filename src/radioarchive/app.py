#!/usr/bin/python3


import argparse
import pathlib
import shutil
import sys
import textwrap
import typing

import colorama
import msgspec

from .downloaders.radio import RadioArchiveDownloader
from .downloaders.vimeo import DEFAULT_USER_AGENT
from .errors import InvalidOperatorSelection, RadioArchiveError
from .output import CLIMessageHandlers
from .util.paths import DEFAULT_OUTPUT_TEMPLATE, OutputPathTemplate

colorama.just_fix_windows_console()

_tw = textwrap.TextWrapper(initial_indent="  ", subsequent_indent="  ")

_SELECTION_EPILOG = """\
EPISODE SELECTION
Episodes are selected by their position in the listing printed by --list (newest first). A selection is a comma-separated list of positions and inclusive ranges, such as '1,3,5-7', or 'all'.
If --episodes is not given, the listing is printed and the selection is read from standard input.
"""

_FORMAT_TEMPLATE_OPTIONS_EPILOG = """\
FORMAT TEMPLATE OPTIONS
Only placeholders in the form '%(key)s' are accepted.

The following keys are available:

number: Episode number taken from the listing title
title: Episode title as shown on the listing
date: Broadcast date in YYYYMMDD form
year: Broadcast year in YYYY form
month: Broadcast month in MM form (01-12)
day: Broadcast day in DD form (01-31)
"""


def _format_epilog_section(section: str) -> str:
    """
    Formats an epilog section such that lines following the header are indented and wrapped
    based on terminal width.
    """

    _tw.width = shutil.get_terminal_size().columns

    def _() -> typing.Iterable[str]:
        header, *rest = section.splitlines()
        yield header
        for line in rest:
            if not line:
                yield line  # keep the empty lines that are dropped by TextWrapper
            yield from _tw.wrap(line)

    return "\n".join(_())


def main() -> None:
    parser = argparse.ArgumentParser(
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="\n\n".join(
            _format_epilog_section(section)
            for section in (_SELECTION_EPILOG, _FORMAT_TEMPLATE_OPTIONS_EPILOG)
        ),
    )

    parser.add_argument("url", type=str, help="URL of the programme's episode listing page")
    parser.add_argument(
        "-e",
        "--episodes",
        type=str,
        help="Episodes to download (see EPISODE SELECTION)",
    )
    parser.add_argument(
        "-l",
        "--list",
        action="store_true",
        dest="list_episodes",
        help="Print the numbered episode listing and exit",
    )
    parser.add_argument(
        "-n",
        "--dry-run",
        action="store_true",
        help="Resolve the episode selection and print it without downloading",
    )
    parser.add_argument(
        "--staging-directory",
        type=pathlib.Path,
        help="Location for intermediary files (created if nonexistent; defaults to the system "
        "temporary directory)",
    )
    parser.add_argument(
        "--output-directory",
        type=pathlib.Path,
        help="Location for muxed outputs (created if nonexistent; defaults to working directory)",
    )
    parser.add_argument(
        "--output-template",
        type=str,
        default=DEFAULT_OUTPUT_TEMPLATE,
        help=(
            "Template string for output filename excluding extension "
            "(defaults to '%%(date)s-%%(number)s')"
        ),
    )
    parser.add_argument(
        "--progress-style",
        type=str,
        choices=[
            handler.tag
            for handler in msgspec.inspect.multi_type_info(typing.get_args(CLIMessageHandlers))
            if isinstance(handler, msgspec.inspect.StructType)
        ],
        default="default",
        help="Style to use for displaying progress results",
    )
    parser.add_argument(
        "--ffmpeg-path",
        type=pathlib.Path,
        help="Path to ffmpeg binary, if there isn't one you want to use in your PATH",
    )
    parser.add_argument(
        "-j",
        "--num-parallel-downloads",
        type=int,
        help="Maximum number of segment requests allowed to be in flight for each stream",
        default=1,
    )
    parser.add_argument(
        "--max-concurrent-episodes",
        type=int,
        help="Maximum number of episodes downloaded at the same time; 0 for no limit",
        default=0,
    )
    parser.add_argument(
        "--user-agent",
        type=str,
        default=DEFAULT_USER_AGENT,
        help="User-Agent header sent with every request",
    )

    args = parser.parse_args()

    try:
        OutputPathTemplate(args.output_template)
    except ValueError as exc:
        parser.error(str(exc))
    if args.num_parallel_downloads < 1:
        parser.error("--num-parallel-downloads must be at least 1")
    if args.max_concurrent_episodes < 0:
        parser.error("--max-concurrent-episodes must not be negative")

    handler = msgspec.convert({"type": args.progress_style}, CLIMessageHandlers)

    options = vars(args)
    options.pop("progress_style")
    downloader = msgspec.convert(options, type=RadioArchiveDownloader)
    downloader.handlers.append(handler)

    try:
        outcomes = downloader.run()
    except InvalidOperatorSelection as exc:
        print(f"Invalid selection: {exc}", file=sys.stderr)
        sys.exit(2)
    except RadioArchiveError as exc:
        print(f"{type(exc).__name__}: {exc}", file=sys.stderr)
        sys.exit(1)

    if any(not outcome.ok for outcome in outcomes):
        sys.exit(1)
