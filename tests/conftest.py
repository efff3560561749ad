from __future__ import annotations

import pytest


def write(path, text: str):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def site_source(tmp_path):
    """A small site source tree: three posts, a project page, assets and themes."""
    source = tmp_path / "src"
    write(
        source / "site.yml",
        "title: Test Site\n"
        "author: Test Author\n"
        "email: test@example.com\n"
        "nav:\n"
        "  - {href: /, text: Home}\n"
        "  - {href: /posts/, text: Posts}\n"
        "home_posts: 2\n",
    )
    write(source / "posts" / "first.md", "---\ntitle: First post\ndate: 2021-01-05\n---\nHello *first*.\n")
    write(
        source / "posts" / "second" / "index.md",
        "---\ntitle: Second post\ndate: 2022-03-10\n---\n![diagram](img/diagram.svg)\n",
    )
    write(source / "posts" / "second" / "img" / "diagram.svg", "<svg></svg>")
    write(
        source / "posts" / "third.md",
        "---\ntitle: Third post\ndate: 2023-07-21T23:30:00-04:00\n---\n```python\nprint('hi')\n```\n",
    )
    write(source / "projects" / "tool.md", "---\ntitle: A tool\n---\nSome project.\n")
    write(source / "projects" / "tool" / "img" / "shot.png", "png")
    write(source / "css" / "index.css", "body { margin: 0; }\n")
    write(source / "css" / "prism-light.css", ".token { color: black; }\n")
    write(source / "css" / "prism-dark.css", ".token {\n  color: white;\n}\n")
    write(source / "_includes" / "notes.txt", "not a page")
    write(source / "drafts" / "notes.txt", "not copied")
    return source
