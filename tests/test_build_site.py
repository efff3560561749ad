"""Tests for the site build pipeline and the build-site command."""
from __future__ import annotations

from pathlib import PurePosixPath

import pytest
from click.testing import CliRunner

from ianjohnson.config import SiteConfig
from ianjohnson.errors import ContentError, SiteError
from ianjohnson.scripts.build_site import BUILD_STEPS, build_site, main


@pytest.fixture
def built(site_source, tmp_path):
    output = tmp_path / "out"
    result = build_site(site_source, output)
    return output, result


def read(path) -> str:
    return path.read_text(encoding="utf-8")


# ---------------------------------------------------------------------------
# Pipeline shape
# ---------------------------------------------------------------------------


class TestPipeline:
    def test_steps_run_in_order(self) -> None:
        assert [step.__name__ for step in BUILD_STEPS] == [
            "clean_output",
            "copy_passthrough",
            "merge_theme_stylesheets",
            "render_pages",
        ]

    def test_missing_source_dir(self, tmp_path) -> None:
        with pytest.raises(SiteError, match="not found"):
            build_site(tmp_path / "nope", tmp_path / "out")

    def test_refuses_to_clear_source(self, site_source) -> None:
        with pytest.raises(SiteError, match="Refusing"):
            build_site(site_source, site_source)

    def test_stale_output_is_removed(self, site_source, tmp_path) -> None:
        output = tmp_path / "out"
        output.mkdir()
        (output / "stale.html").write_text("old")
        build_site(site_source, output)
        assert not (output / "stale.html").exists()


# ---------------------------------------------------------------------------
# Passthrough copy and theme merge
# ---------------------------------------------------------------------------


class TestAssets:
    def test_passthrough_files_are_copied(self, built) -> None:
        output, result = built
        assert (output / "css" / "index.css").exists()
        assert (output / "posts" / "second" / "img" / "diagram.svg").exists()
        assert (output / "projects" / "tool" / "img" / "shot.png").exists()
        assert PurePosixPath("css/index.css") in result.copied

    def test_unmatched_files_are_not_copied(self, built) -> None:
        output, _ = built
        assert not (output / "drafts").exists()
        assert not (output / "site.yml").exists()

    def test_theme_is_merged(self, built) -> None:
        output, result = built
        assert result.theme == PurePosixPath("css/prism-theme.css")
        assert read(output / "css" / "prism-theme.css") == (
            ".token { color: black; }\n\n"
            "@media (prefers-color-scheme: dark) {\n"
            "  .token {\n"
            "    color: white;\n"
            "  }\n"
            "}\n"
        )

    def test_theme_skipped_without_light_source(self, site_source, tmp_path) -> None:
        (site_source / "css" / "prism-light.css").unlink()
        result = build_site(site_source, tmp_path / "out")
        assert result.theme is None

    def test_missing_dark_theme_fails_build(self, site_source, tmp_path) -> None:
        (site_source / "css" / "prism-dark.css").unlink()
        with pytest.raises(FileNotFoundError):
            build_site(site_source, tmp_path / "out")

    def test_themes_disabled(self, site_source, tmp_path) -> None:
        result = build_site(site_source, tmp_path / "out", SiteConfig(themes=None))
        assert result.theme is None


# ---------------------------------------------------------------------------
# Rendered pages
# ---------------------------------------------------------------------------


class TestPages:
    def test_expected_pages_are_written(self, built) -> None:
        _, result = built
        assert set(result.pages) == {
            PurePosixPath("posts/first/index.html"),
            PurePosixPath("posts/second/index.html"),
            PurePosixPath("posts/third/index.html"),
            PurePosixPath("projects/tool/index.html"),
            PurePosixPath("index.html"),
            PurePosixPath("posts/index.html"),
        }

    def test_post_layout(self, built) -> None:
        output, _ = built
        html = read(output / "posts" / "first" / "index.html")
        assert html.startswith("<!DOCTYPE html>")
        assert "<title>First post</title>" in html
        assert "<h1>First post</h1>" in html
        assert "<article><p>Hello <em>first</em>.</p></article>" in html
        assert '<time datetime="2021-01-05">2021-01-05</time>' in html

    def test_standalone_layout(self, built) -> None:
        output, _ = built
        html = read(output / "projects" / "tool" / "index.html")
        assert "<h1>A tool</h1>" in html
        assert "<time" not in html

    def test_code_blocks_are_highlighted(self, built) -> None:
        output, _ = built
        assert 'class="highlight"' in read(output / "posts" / "third" / "index.html")

    def test_homepage_lists_recent_posts_newest_first(self, built) -> None:
        output, _ = built
        html = read(output / "index.html")
        assert "<title>Test Site</title>" in html
        assert "Recent posts" in html
        assert "First post" not in html
        assert html.index("Third post") < html.index("Second post")
        assert '<a href="/posts/third/">Third post</a>' in html
        assert '<time datetime="2023-07-22">2023-07-22</time>' in html

    def test_posts_page_lists_all_posts(self, built) -> None:
        output, _ = built
        html = read(output / "posts" / "index.html")
        assert "<title>Posts</title>" in html
        assert html.index("Third post") < html.index("Second post") < html.index("First post")

    def test_nav_does_not_link_current_page(self, built) -> None:
        output, _ = built
        home = read(output / "index.html")
        assert '<a href="/">Home</a>' not in home
        assert '<a href="/posts/">Posts</a>' in home
        posts = read(output / "posts" / "index.html")
        assert '<a href="/">Home</a>' in posts
        assert '<a href="/posts/">Posts</a>' not in posts

    def test_footer_uses_site_data(self, built) -> None:
        output, _ = built
        html = read(output / "index.html")
        assert "Written by Test Author" in html
        assert 'href="mailto:test@example.com"' in html
        assert "mastodon" not in html.lower()

    def test_source_index_replaces_builtin(self, site_source, tmp_path) -> None:
        (site_source / "index.html").write_text(
            "---\ntitle: Custom home\nlayout: layouts/main.html\n---\n"
            "<p>{{ collections.posts|lastN(1)|map(attribute='data.title')|join }}</p>\n"
        )
        output = tmp_path / "out"
        build_site(site_source, output)
        html = read(output / "index.html")
        assert "<title>Custom home</title>" in html
        assert "<p>Third post</p>" in html
        assert "Recent posts" not in html

    def test_includes_override_packaged_layouts(self, site_source, tmp_path) -> None:
        (site_source / "_includes" / "layouts").mkdir(parents=True)
        (site_source / "_includes" / "layouts" / "post.html").write_text("POST {{ title }}: {{ content }}")
        output = tmp_path / "out"
        build_site(site_source, output)
        assert read(output / "posts" / "first" / "index.html") == "POST First post: <p>Hello <em>first</em>.</p>"

    def test_html_page_values_are_escaped(self, site_source, tmp_path) -> None:
        (site_source / "about.html").write_text("---\nname: <b>me</b>\n---\n{{ name }}")
        output = tmp_path / "out"
        build_site(site_source, output)
        assert read(output / "about" / "index.html") == "&lt;b&gt;me&lt;/b&gt;"

    def test_unknown_layout(self, site_source, tmp_path) -> None:
        (site_source / "odd.md").write_text("---\nlayout: layouts/nope.html\n---\nx")
        with pytest.raises(ContentError, match="layouts/nope.html"):
            build_site(site_source, tmp_path / "out")

    def test_template_syntax_error_names_the_page(self, site_source, tmp_path) -> None:
        (site_source / "broken.html").write_text("{% if %}oops")
        with pytest.raises(ContentError, match="broken.html"):
            build_site(site_source, tmp_path / "out")

    def test_undefined_filter_names_the_page(self, site_source, tmp_path) -> None:
        (site_source / "broken.html").write_text("{{ 1|nosuchfilter }}")
        with pytest.raises(ContentError, match="broken.html"):
            build_site(site_source, tmp_path / "out")

    def test_front_matter_title_is_stringified(self, site_source, tmp_path) -> None:
        (site_source / "numbers.md").write_text("---\ntitle: 42\n---\nx")
        output = tmp_path / "out"
        build_site(site_source, output)
        assert "<title>42</title>" in read(output / "numbers" / "index.html")

    def test_posts_index_replaces_builtin_listing(self, site_source, tmp_path) -> None:
        (site_source / "posts" / "index.md").write_text("---\ntitle: Archive\n---\nEverything.")
        output = tmp_path / "out"
        build_site(site_source, output)
        html = read(output / "posts" / "index.html")
        assert "<title>Archive</title>" in html
        assert "Archive" not in read(output / "index.html")

    def test_duplicate_output_paths(self, site_source, tmp_path) -> None:
        (site_source / "posts" / "first.html").write_text("clash")
        with pytest.raises(ContentError, match="both write"):
            build_site(site_source, tmp_path / "out")


# ---------------------------------------------------------------------------
# build-site command
# ---------------------------------------------------------------------------


class TestBuildSiteCommand:
    def test_builds(self, site_source, tmp_path) -> None:
        output = tmp_path / "out"
        result = CliRunner().invoke(main, ["--source", str(site_source), "--output", str(output)])
        assert result.exit_code == 0, result.output
        assert "Built 6 pages" in result.output
        assert (output / "index.html").exists()

    def test_reads_environment(self, site_source, tmp_path) -> None:
        output = tmp_path / "env-out"
        result = CliRunner().invoke(
            main, [], env={"SITE_SOURCE_DIR": str(site_source), "SITE_OUTPUT_DIR": str(output)}
        )
        assert result.exit_code == 0, result.output
        assert (output / "posts" / "index.html").exists()

    def test_errors_exit_one(self, site_source, tmp_path) -> None:
        (site_source / "site.yml").write_text("nav: nope\n")
        result = CliRunner().invoke(main, ["--source", str(site_source), "--output", str(tmp_path / "out")])
        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_template_errors_exit_one(self, site_source, tmp_path) -> None:
        (site_source / "broken.html").write_text("{{ unclosed")
        result = CliRunner().invoke(main, ["--source", str(site_source), "--output", str(tmp_path / "out")])
        assert result.exit_code == 1
        assert "broken.html" in result.output
        assert "template error" in result.output
