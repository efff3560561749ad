from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Sequence

import yaml

from ianjohnson.errors import ConfigError
from ianjohnson.filters import iso_date, last_n

SITE_CONFIG_FILE = "site.yml"
DEFAULT_OUTPUT_DIRNAME = "_site"

DEFAULT_PASSTHROUGH = (
    "css",
    "posts/**/img/*",
    "projects/**/img/*",
    "img/*",
    "favicon.*",
)

DEFAULT_NAV = (
    {"href": "/", "text": "Home"},
    {"href": "/posts/", "text": "Posts"},
    {"href": "/projects/", "text": "Projects"},
)

DEFAULT_THEMES = {
    "light": "css/prism-light.css",
    "dark": "css/prism-dark.css",
    "output": "css/prism-theme.css",
}

DEFAULT_SITE_DATA: dict[str, Any] = {
    "title": "Ian Johnson",
    "author": "Ian Johnson",
    "email": "",
    "mastodon": "",
    "license_url": "https://creativecommons.org/publicdomain/zero/1.0/",
    "home_posts": 5,
    "listing_posts": 20,
}


def _is_truthy(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def source_dir_from_env() -> Path:
    return Path(os.environ.get("SITE_SOURCE_DIR", os.getcwd()))


def output_dir_from_env(source_dir: Path) -> Path:
    configured = os.environ.get("SITE_OUTPUT_DIR")
    if configured:
        return Path(configured)
    return source_dir / DEFAULT_OUTPUT_DIRNAME


def debug_from_env() -> bool:
    return _is_truthy(os.environ.get("SITE_DEBUG"))


@dataclass(frozen=True)
class NavLink:
    href: str
    text: str


@dataclass(frozen=True)
class ThemeSources:
    light: str
    dark: str
    output: str


@dataclass(frozen=True)
class SiteFilters:
    """Every filter templates may use. Nothing else is registered."""

    iso_date: Callable[[Any], str] = iso_date
    last_n: Callable[[Sequence[Any], int], list[Any]] = last_n

    def as_jinja_filters(self) -> dict[str, Callable[..., Any]]:
        return {
            "isoDate": self.iso_date,
            "iso_date": self.iso_date,
            "lastN": self.last_n,
            "last_n": self.last_n,
        }


@dataclass(frozen=True)
class SiteConfig:
    filters: SiteFilters = field(default_factory=SiteFilters)
    nav: tuple[NavLink, ...] = tuple(NavLink(**link) for link in DEFAULT_NAV)
    passthrough: tuple[str, ...] = DEFAULT_PASSTHROUGH
    themes: ThemeSources | None = ThemeSources(**DEFAULT_THEMES)
    syntax_highlight: bool = True
    data: dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_SITE_DATA))


def _nav_links(raw: Any) -> tuple[NavLink, ...]:
    if not isinstance(raw, list):
        raise ConfigError("site.yml: 'nav' must be a list of {href, text} entries")
    links = []
    for entry in raw:
        if not isinstance(entry, dict) or "href" not in entry or "text" not in entry:
            raise ConfigError(f"site.yml: invalid nav entry {entry!r}")
        links.append(NavLink(href=str(entry["href"]), text=str(entry["text"])))
    return tuple(links)


def _theme_sources(raw: Any) -> ThemeSources | None:
    if raw is None or raw is False:
        return None
    if not isinstance(raw, dict):
        raise ConfigError("site.yml: 'themes' must be a mapping with light, dark and output")
    merged = {**DEFAULT_THEMES, **raw}
    return ThemeSources(light=str(merged["light"]), dark=str(merged["dark"]), output=str(merged["output"]))


def load_site_config(source_dir: Path) -> SiteConfig:
    """Build the SiteConfig for ``source_dir``, reading its site.yml if there is one."""
    config_path = source_dir / SITE_CONFIG_FILE
    if not config_path.exists():
        return SiteConfig()

    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"{config_path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"{config_path}: expected a mapping at the top level")

    raw = dict(raw)
    kwargs: dict[str, Any] = {}
    if "nav" in raw:
        kwargs["nav"] = _nav_links(raw.pop("nav"))
    if "passthrough" in raw:
        passthrough = raw.pop("passthrough") or []
        if not isinstance(passthrough, list):
            raise ConfigError("site.yml: 'passthrough' must be a list of globs")
        kwargs["passthrough"] = tuple(str(pattern) for pattern in passthrough)
    if "themes" in raw:
        kwargs["themes"] = _theme_sources(raw.pop("themes"))
    if "syntax_highlight" in raw:
        kwargs["syntax_highlight"] = bool(raw.pop("syntax_highlight"))

    return SiteConfig(data={**DEFAULT_SITE_DATA, **raw}, **kwargs)
