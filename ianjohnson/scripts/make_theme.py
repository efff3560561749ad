#!/usr/bin/env python3
"""Merge a light and a dark stylesheet into one color-scheme aware stylesheet.

Usage: make-theme <light-theme-path> <dark-theme-path> <output-path>

The dark rules end up nested in a ``prefers-color-scheme: dark`` media query
below the light rules, so pages only link a single stylesheet.
"""

from __future__ import annotations

import logging
import os
import re
import stat
import tempfile
from pathlib import Path

import click

logger = logging.getLogger(__name__)

DARK_MEDIA_QUERY = "@media (prefers-color-scheme: dark)"
INDENT = "  "
# Whitespace plus the byte order mark, as JavaScript trim() strips them.
EDGE_WHITESPACE = re.compile(r"\A[\s\ufeff]+|[\s\ufeff]+\Z")


def _trim(text: str) -> str:
    return EDGE_WHITESPACE.sub("", text)


def merge_theme_css(light: str, dark: str) -> str:
    dark_block = _trim(dark).replace("\n", "\n" + INDENT)
    return f"{_trim(light)}\n\n{DARK_MEDIA_QUERY} {{\n{INDENT}{dark_block}\n}}\n"


def _read_text(path: Path) -> str:
    # newline="" keeps CRLF sources byte-for-byte.
    with path.open(encoding="utf-8", newline="") as handle:
        return handle.read()


def _target_mode(target: Path) -> int:
    try:
        return stat.S_IMODE(target.stat().st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def _write_text_atomic(target: Path, text: str) -> None:
    # Sibling temp file so the final rename never crosses filesystems.
    fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            handle.write(text)
        os.chmod(tmp_name, _target_mode(target))
        os.replace(tmp_name, target)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def merge_themes(light_path: str | Path, dark_path: str | Path, output_path: str | Path) -> str:
    """Read both themes, write the merged stylesheet to ``output_path`` and return it.

    Both inputs are read before the output is touched, so a missing theme
    leaves any existing output as it was.
    """
    light = _read_text(Path(light_path))
    dark = _read_text(Path(dark_path))
    merged = merge_theme_css(light, dark)

    _write_text_atomic(Path(output_path), merged)
    logger.debug("Wrote merged theme %s (%d bytes)", output_path, len(merged.encode("utf-8")))
    return merged


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("light_path", metavar="LIGHT_THEME", type=click.Path(dir_okay=False, path_type=Path))
@click.argument("dark_path", metavar="DARK_THEME", type=click.Path(dir_okay=False, path_type=Path))
@click.argument("output_path", metavar="OUTPUT", type=click.Path(dir_okay=False, path_type=Path))
def main(light_path: Path, dark_path: Path, output_path: Path) -> None:
    """Merge LIGHT_THEME and DARK_THEME into OUTPUT, scoping the dark rules to dark mode."""
    try:
        merge_themes(light_path, dark_path, output_path)
    except UnicodeDecodeError as exc:
        raise click.ClickException(f"Theme is not valid UTF-8 text: {exc}") from exc
    except OSError as exc:
        target = exc.filename or output_path
        raise click.ClickException(f"{exc.strerror or exc}: {target}") from exc


if __name__ == "__main__":
    main()
