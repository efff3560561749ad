#!/usr/bin/env python3
"""Render the site source directory into static HTML.

The build is an ordered list of independent steps (clean, passthrough copy,
theme merge, page rendering) sharing one BuildContext.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Any, Callable

import click
from jinja2 import (
    ChoiceLoader,
    Environment,
    FileSystemLoader,
    PackageLoader,
    TemplateError,
    TemplateNotFound,
    select_autoescape,
)
from markupsafe import Markup

from ianjohnson.config import (
    SiteConfig,
    load_site_config,
    output_dir_from_env,
    source_dir_from_env,
)
from ianjohnson.content import (
    Page,
    build_collections,
    load_pages,
    output_path_for,
    parse_front_matter,
    render_markdown,
    url_for,
)
from ianjohnson.errors import ContentError, SiteError
from ianjohnson.scripts.make_theme import merge_themes

logger = logging.getLogger(__name__)

INCLUDES_DIR = "_includes"
BUILTIN_PAGES = {
    "index.html": "pages/index.html",
    "posts.html": "pages/posts.html",
}


@dataclass
class BuildResult:
    pages: list[PurePosixPath] = field(default_factory=list)
    copied: list[PurePosixPath] = field(default_factory=list)
    theme: PurePosixPath | None = None


@dataclass
class BuildContext:
    source_dir: Path
    output_dir: Path
    config: SiteConfig
    result: BuildResult = field(default_factory=BuildResult)


@dataclass
class RenderContext:
    """Everything a page or layout template can see."""

    page: Page
    collections: dict[str, list[Page]]
    config: SiteConfig
    content: Markup | None = None

    def as_dict(self) -> dict[str, Any]:
        values: dict[str, Any] = {**self.config.data, **self.page.data}
        values.update(
            page=self.page,
            collections=self.collections,
            nav=self.config.nav,
            site=self.config.data,
            title=self.page.title or self.config.data.get("title", ""),
        )
        if self.content is not None:
            values["content"] = self.content
        return values


def load_env(source_dir: Path, config: SiteConfig) -> Environment:
    env = Environment(
        loader=ChoiceLoader(
            [
                FileSystemLoader(str(source_dir / INCLUDES_DIR)),
                PackageLoader("ianjohnson", "templates"),
            ]
        ),
        autoescape=select_autoescape(["html", "xml"], default_for_string=True),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )
    env.filters.update(config.filters.as_jinja_filters())
    return env


def _is_within(path: Path, parent: Path) -> bool:
    return path.resolve().is_relative_to(parent.resolve())


def clean_output(ctx: BuildContext) -> None:
    if _is_within(ctx.source_dir, ctx.output_dir):
        raise SiteError(f"Refusing to clear {ctx.output_dir}: it contains the site source")
    if ctx.output_dir.exists():
        shutil.rmtree(ctx.output_dir)
    ctx.output_dir.mkdir(parents=True, exist_ok=True)


def copy_passthrough(ctx: BuildContext) -> None:
    for pattern in ctx.config.passthrough:
        for source in sorted(ctx.source_dir.glob(pattern)):
            if _is_within(source, ctx.output_dir):
                continue
            files = sorted(p for p in source.rglob("*") if p.is_file()) if source.is_dir() else [source]
            for file_path in files:
                relative = PurePosixPath(file_path.relative_to(ctx.source_dir).as_posix())
                if relative in ctx.result.copied:
                    continue
                destination = ctx.output_dir / relative
                destination.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(file_path, destination)
                ctx.result.copied.append(relative)
    logger.info("Copied %d passthrough files", len(ctx.result.copied))


def merge_theme_stylesheets(ctx: BuildContext) -> None:
    themes = ctx.config.themes
    if themes is None:
        return
    light_path = ctx.source_dir / themes.light
    if not light_path.exists():
        logger.debug("No light theme at %s, skipping theme merge", light_path)
        return

    output = ctx.output_dir / themes.output
    output.parent.mkdir(parents=True, exist_ok=True)
    merge_themes(light_path, ctx.source_dir / themes.dark, output)
    ctx.result.theme = PurePosixPath(themes.output)
    logger.info("Merged theme stylesheet -> %s", themes.output)


def builtin_pages(env: Environment, pages: list[Page]) -> list[Page]:
    """Default homepage and post listing for sources that do not define their own."""
    taken = {page.url for page in pages}
    now = datetime.now(timezone.utc)
    extra = []
    for name, template_name in BUILTIN_PAGES.items():
        url = url_for(PurePosixPath(name))
        if url in taken:
            continue
        source, _, _ = env.loader.get_source(env, template_name)
        data, body = parse_front_matter(source, source=template_name)
        data.setdefault("layout", None)
        extra.append(
            Page(
                input_path=PurePosixPath(name),
                url=url,
                output_path=output_path_for(url),
                date=now,
                content=body,
                data=data,
            )
        )
    return extra


def _render_page(env: Environment, page: Page, context: RenderContext, syntax_highlight: bool) -> str:
    if page.syntax == "md":
        body = Markup(render_markdown(page.content, syntax_highlight=syntax_highlight))
    else:
        body = Markup(env.from_string(page.content).render(context.as_dict()))

    if not page.layout:
        return str(body)
    try:
        layout = env.get_template(page.layout)
    except TemplateNotFound as exc:
        raise ContentError(f"{page.input_path}: layout {page.layout!r} not found") from exc
    context.content = body
    return layout.render(context.as_dict())


def render_page(env: Environment, page: Page, collections: dict[str, list[Page]], config: SiteConfig) -> str:
    context = RenderContext(page=page, collections=collections, config=config)
    try:
        return _render_page(env, page, context, config.syntax_highlight)
    except TemplateError as exc:
        where = f" line {exc.lineno}" if getattr(exc, "lineno", None) else ""
        raise ContentError(f"{page.input_path}:{where} template error: {exc.message or exc}") from exc


def render_pages(ctx: BuildContext) -> None:
    env = load_env(ctx.source_dir, ctx.config)
    pages = load_pages(ctx.source_dir, exclude=[ctx.output_dir])
    pages += builtin_pages(env, pages)
    collections = build_collections(pages)

    written: dict[PurePosixPath, PurePosixPath] = {}
    for page in pages:
        if page.output_path in written:
            raise ContentError(
                f"{page.input_path} and {written[page.output_path]} both write {page.output_path}"
            )
        written[page.output_path] = page.input_path

        html = render_page(env, page, collections, ctx.config)
        destination = ctx.output_dir / page.output_path
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(html, encoding="utf-8")
        ctx.result.pages.append(page.output_path)
        logger.debug("Rendered %s -> %s", page.input_path, page.output_path)
    logger.info("Rendered %d pages", len(ctx.result.pages))


BUILD_STEPS: tuple[Callable[[BuildContext], None], ...] = (
    clean_output,
    copy_passthrough,
    merge_theme_stylesheets,
    render_pages,
)


def build_site(source_dir: Path, output_dir: Path, config: SiteConfig | None = None) -> BuildResult:
    if not source_dir.is_dir():
        raise SiteError(f"Site source directory not found: {source_dir}")
    ctx = BuildContext(
        source_dir=source_dir,
        output_dir=output_dir,
        config=config or load_site_config(source_dir),
    )
    for step in BUILD_STEPS:
        logger.debug("Running build step %s", step.__name__)
        step(ctx)
    return ctx.result


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--source",
    envvar="SITE_SOURCE_DIR",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Site source directory (default: current directory).",
)
@click.option(
    "--output",
    envvar="SITE_OUTPUT_DIR",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Output directory (default: <source>/_site).",
)
@click.option("--verbose", "-v", is_flag=True, help="Log every build step and page.")
def main(source: Path | None, output: Path | None, verbose: bool) -> None:
    """Build the static site."""
    configure_logging(verbose)
    source = source or source_dir_from_env()
    output = output or output_dir_from_env(source)
    try:
        result = build_site(source, output)
    except SiteError as exc:
        raise click.ClickException(str(exc)) from exc
    except OSError as exc:
        message = f"{exc.strerror}: {exc.filename}" if exc.filename else str(exc)
        raise click.ClickException(message) from exc
    click.echo(f"Built {len(result.pages)} pages, copied {len(result.copied)} files -> {output}")


if __name__ == "__main__":
    main()
