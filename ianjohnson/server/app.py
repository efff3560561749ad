from __future__ import annotations

import logging
import os
from pathlib import Path

import click
from flask import Flask, Response, abort, redirect, request, send_from_directory

from ianjohnson.config import debug_from_env, output_dir_from_env, source_dir_from_env
from ianjohnson.errors import SiteError

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080


def _resolve_file(site_dir: Path, filename: str) -> str | None:
    """Map a request path onto a file in the built site, following pretty URLs."""
    candidate = (site_dir / filename).resolve()
    if not candidate.is_relative_to(site_dir.resolve()):
        return None
    if candidate.is_dir():
        candidate = candidate / "index.html"
    if not candidate.is_file():
        return None
    return candidate.relative_to(site_dir.resolve()).as_posix()


def create_app(site_dir: Path | None = None) -> Flask:
    """Create a Flask app that serves the built site in ``site_dir``."""
    if site_dir is None:
        site_dir = output_dir_from_env(source_dir_from_env())

    app = Flask(__name__)
    app.config["SITE_DIR"] = Path(site_dir).resolve()

    @app.get("/")
    def index() -> Response:
        return send_from_directory(app.config["SITE_DIR"], "index.html")

    @app.get("/<path:filename>")
    def static_site(filename: str) -> Response:
        site = app.config["SITE_DIR"]
        resolved = _resolve_file(site, filename)
        if resolved is None:
            logger.debug("No built file for %s", request.path)
            abort(404)
        # Directory URLs need the trailing slash so relative links resolve.
        if (site / filename).is_dir() and not request.path.endswith("/"):
            return redirect(request.path + "/", code=301)
        return send_from_directory(site, resolved)

    return app


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--source", envvar="SITE_SOURCE_DIR", type=click.Path(file_okay=False, path_type=Path), default=None)
@click.option("--output", envvar="SITE_OUTPUT_DIR", type=click.Path(file_okay=False, path_type=Path), default=None)
@click.option("--host", envvar="HOST", default=DEFAULT_HOST, show_default=True, help="Host to bind to.")
@click.option("--port", envvar="PORT", default=DEFAULT_PORT, type=int, show_default=True, help="Port to bind to.")
@click.option("--build/--no-build", default=True, help="Build the site before serving it.")
def main(source: Path | None, output: Path | None, host: str, port: int, build: bool) -> None:
    """Serve the built site for local preview."""
    source = source or source_dir_from_env()
    output = output or output_dir_from_env(source)

    if build:
        from ianjohnson.scripts.build_site import build_site, configure_logging

        configure_logging(verbose=False)
        try:
            build_site(source, output)
        except SiteError as exc:
            raise click.ClickException(str(exc)) from exc
    if not output.is_dir():
        raise click.ClickException(f"{output} does not exist. Run build-site first.")

    click.echo(f"Serving http://{host}:{port}/ (site dir: {output})")
    create_app(output).run(host=host, port=port, debug=debug_from_env())


if __name__ == "__main__":
    host = os.environ.get("HOST", DEFAULT_HOST)
    port = int(os.environ.get("PORT", str(DEFAULT_PORT)))
    create_app().run(host=host, port=port, debug=debug_from_env())
