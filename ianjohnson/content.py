from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Any, Iterable

import markdown
import yaml

from ianjohnson.errors import ContentError
from ianjohnson.filters import to_datetime

logger = logging.getLogger(__name__)

PAGE_SUFFIXES = {".md", ".html"}
POSTS_DIR = "posts"
POST_LAYOUT = "layouts/post.html"
STANDALONE_LAYOUT = "layouts/standalone.html"

FRONT_MATTER_PATTERN = re.compile(r"\A---[ \t]*\r?\n(.*?)^---[ \t]*\r?\n?", re.DOTALL | re.MULTILINE)


@dataclass
class Page:
    input_path: PurePosixPath
    url: str
    output_path: PurePosixPath
    date: datetime
    content: str
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def syntax(self) -> str:
        return self.input_path.suffix.lstrip(".")

    @property
    def title(self) -> str:
        return str(self.data.get("title", ""))

    @property
    def layout(self) -> str | None:
        return self.data.get("layout")

    @property
    def is_post(self) -> bool:
        return _in_posts(self.input_path) and self.syntax == "md"


def parse_front_matter(text: str, source: str = "<string>") -> tuple[dict[str, Any], str]:
    """Split ``---`` delimited YAML front matter off ``text``."""
    match = FRONT_MATTER_PATTERN.match(text)
    if not match:
        return {}, text

    try:
        data = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as exc:
        raise ContentError(f"{source}: invalid front matter: {exc}") from exc
    if not isinstance(data, dict):
        raise ContentError(f"{source}: front matter must be a mapping")
    return data, text[match.end():]


def url_for(input_path: PurePosixPath) -> str:
    """Pretty URL for a source file: ``posts/foo.md`` -> ``/posts/foo/``."""
    parts = list(input_path.with_suffix("").parts)
    if parts and parts[-1] == "index":
        parts.pop()
    if not parts:
        return "/"
    return "/" + "/".join(parts) + "/"


def output_path_for(url: str) -> PurePosixPath:
    relative = url.lstrip("/")
    if not relative or url.endswith("/"):
        return PurePosixPath(relative) / "index.html"
    return PurePosixPath(relative)


def _in_posts(input_path: PurePosixPath) -> bool:
    # posts/index.* is the listing page, not an entry in it.
    if input_path.parts[:1] != (POSTS_DIR,):
        return False
    return not (len(input_path.parts) == 2 and input_path.stem == "index")


def default_layout(input_path: PurePosixPath) -> str | None:
    if input_path.suffix != ".md":
        return None
    if _in_posts(input_path):
        return POST_LAYOUT
    return STANDALONE_LAYOUT


def _is_ignored(relative: PurePosixPath) -> bool:
    return any(part.startswith(("_", ".")) for part in relative.parts)


def discover_sources(source_dir: Path, exclude: Iterable[Path] = ()) -> list[Path]:
    excluded = [path.resolve() for path in exclude]
    found = []
    for path in sorted(source_dir.rglob("*")):
        if not path.is_file() or path.suffix not in PAGE_SUFFIXES:
            continue
        resolved = path.resolve()
        if any(resolved.is_relative_to(ex) for ex in excluded):
            continue
        if _is_ignored(PurePosixPath(path.relative_to(source_dir).as_posix())):
            continue
        found.append(path)
    return found


def load_page(source_dir: Path, path: Path) -> Page:
    relative = PurePosixPath(path.relative_to(source_dir).as_posix())
    data, body = parse_front_matter(path.read_text(encoding="utf-8"), source=str(relative))

    if "layout" not in data:
        data["layout"] = default_layout(relative)

    if "date" in data:
        try:
            page_date = to_datetime(data["date"])
        except (TypeError, ValueError) as exc:
            raise ContentError(f"{relative}: unreadable date {data['date']!r}") from exc
    else:
        page_date = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)

    url = str(data["permalink"]) if data.get("permalink") else url_for(relative)
    return Page(
        input_path=relative,
        url=url,
        output_path=output_path_for(url),
        date=page_date,
        content=body,
        data=data,
    )


def load_pages(source_dir: Path, exclude: Iterable[Path] = ()) -> list[Page]:
    pages = [load_page(source_dir, path) for path in discover_sources(source_dir, exclude)]
    logger.debug("Loaded %d page sources from %s", len(pages), source_dir)
    return pages


def build_collections(pages: Iterable[Page]) -> dict[str, list[Page]]:
    ordered = sorted(pages, key=lambda page: (page.date, str(page.input_path)))
    return {
        "all": ordered,
        "posts": [page for page in ordered if page.is_post],
    }


def render_markdown(text: str, syntax_highlight: bool = True) -> str:
    extensions = ["fenced_code", "tables", "toc"]
    extension_configs: dict[str, dict[str, Any]] = {}
    if syntax_highlight:
        extensions.append("codehilite")
        extension_configs["codehilite"] = {"guess_lang": False, "css_class": "highlight"}
    return markdown.markdown(
        text,
        extensions=extensions,
        extension_configs=extension_configs,
        output_format="html",
    )
