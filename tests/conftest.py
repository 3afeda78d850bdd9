"""Shared test fixtures for whisker."""

from __future__ import annotations

from pathlib import Path

import pytest

from whisker.config import WhiskerConfig
from whisker.queries.compiler import query_hash
from whisker.state.models import ExtractedQuery, StaticQuery
from whisker.state.store import QueryStore


@pytest.fixture
def tmp_site(tmp_path: Path) -> Path:
    """Create a minimal site whose templates hold every kind of query block.

    templates/page.html          route query spreading the "Meta" fragment
    templates/index.html         no query
    templates/partials/nav.html  static query "Nav"
    templates/fragments.html     fragment "Meta"
    """
    templates = tmp_path / "templates"
    templates.mkdir()
    (templates / "page.html").write_text(
        "<html>\n"
        "{% query %}\n"
        "  page { title ...Meta }\n"
        "{% endquery %}\n"
        "<body>{{ content }}</body>\n"
        "</html>\n"
    )
    (templates / "index.html").write_text(
        "<html>\n<body>{{ content }}</body>\n</html>\n"
    )
    partials = templates / "partials"
    partials.mkdir()
    (partials / "nav.html").write_text(
        '{% static_query "Nav" %}\n'
        "  menu { items { title url } }\n"
        "{% endstatic_query %}\n"
        "<nav></nav>\n"
    )
    (templates / "fragments.html").write_text(
        '{% fragment "Meta" %}\n'
        "  meta { description }\n"
        "{% endfragment %}\n"
    )
    return tmp_path


@pytest.fixture
def config(tmp_site: Path) -> WhiskerConfig:
    """A develop-mode config rooted at the temp site, with a short debounce."""
    return WhiskerConfig(root=tmp_site, debounce_ms=10)


@pytest.fixture
def store() -> QueryStore:
    return QueryStore()


def make_query(
    path: str,
    text: str,
    *,
    static: bool = False,
    query_id: str | None = None,
    hash: str | None = None,
    name: str = "Query",
) -> ExtractedQuery:
    """Build an ExtractedQuery with sensible defaults for the given path."""
    return ExtractedQuery(
        id=query_id if query_id is not None else (f"sq-{path}" if static else path),
        name=name,
        path=path,
        text=text,
        hash=hash if hash is not None else query_hash(text),
        is_static_query=static,
    )


def make_static(
    path: str,
    text: str,
    *,
    query_id: str | None = None,
    hash: str | None = None,
    name: str = "Query",
) -> StaticQuery:
    """Build a stored StaticQuery matching ``make_query(..., static=True)``."""
    return StaticQuery(
        id=query_id if query_id is not None else f"sq-{path}",
        name=name,
        component_path=path,
        query=text,
        hash=hash if hash is not None else query_hash(text),
    )
