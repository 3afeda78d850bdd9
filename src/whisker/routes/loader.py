"""Route loader — decide which templates back a route.

A template's page query only runs when at least one route renders the
template.  Routes come from two places:

    whisker.yaml           routes: {"/about": "about.html"}
    Bengal content         content/docs/_index.md  -> index.html
                           content/docs/intro.md   -> page.html
                           (frontmatter ``template:`` overrides both)

Template names are resolved against ``config.templates_path``, so the
resulting component paths line up with the paths the compiler reports.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from whisker._errors import ConfigError
from whisker._types import slash
from whisker.state.models import Route

if TYPE_CHECKING:
    from collections.abc import Iterable

    from bengal.core.page import Page
    from bengal.core.site import Site

    from whisker.config import WhiskerConfig
    from whisker.state.store import QueryStore


_DEFAULT_TEMPLATE = "page.html"
_INDEX_TEMPLATE = "index.html"


def component_for(template: str, config: WhiskerConfig) -> str:
    """Absolute, slash-normalized path of *template* under the templates dir."""
    path = Path(template)
    if not path.is_absolute():
        path = config.templates_path / path
    return slash(path)


def routes_from_config(config: WhiskerConfig) -> tuple[Route, ...]:
    """Routes declared in the config's ``routes`` manifest.

    Raises:
        ConfigError: On an empty template name or a duplicate route path.

    """
    routes: list[Route] = []
    seen: set[str] = set()
    for route_path, template in config.routes:
        if not template:
            msg = f"Route {route_path!r} has no template"
            raise ConfigError(msg)
        path = _normalize_route_path(route_path)
        if path in seen:
            msg = f"Duplicate route path {path!r} in routes manifest"
            raise ConfigError(msg)
        seen.add(path)
        routes.append(Route(path=path, component=component_for(template, config)))
    return tuple(routes)


def routes_from_site(site: Site, config: WhiskerConfig) -> tuple[Route, ...]:
    """One route per Bengal page that has a usable permalink.

    Pages without a permalink are skipped.  When two pages claim the same
    permalink the first one wins.
    """
    routes: dict[str, Route] = {}
    for page in site.pages:
        permalink = _get_permalink(page)
        if permalink is None or permalink in routes:
            continue
        template = _resolve_template_name(page)
        routes[permalink] = Route(path=permalink, component=component_for(template, config))
    return tuple(routes.values())


def _resolve_template_name(page: Page) -> str:
    """Determine which template renders a page.

    Resolution order:
        1. Explicit ``template`` key in page frontmatter/metadata.
        2. ``index.html`` for section index pages (``_index.md``).
        3. ``page.html`` as the default fallback.

    """
    explicit = page.metadata.get("template") if hasattr(page, "metadata") else None
    if explicit:
        return str(explicit)

    if hasattr(page, "source_path") and page.source_path and page.source_path.name == "_index.md":
        return _INDEX_TEMPLATE

    return _DEFAULT_TEMPLATE


def _get_permalink(page: Page) -> str | None:
    """URL path for a page: ``href``, then ``_path``, else None."""
    if hasattr(page, "href") and page.href:
        return str(page.href)

    if hasattr(page, "_path") and page._path:
        return _normalize_route_path(str(page._path))

    return None


def _normalize_route_path(path: str) -> str:
    return path if path.startswith("/") else "/" + path


def load_site(root: Path) -> Site:
    """Load a Bengal site and discover its content.

    Raises:
        ConfigError: If the site cannot be loaded (missing config, bad structure).

    """
    try:
        from bengal.core.site import Site
        from bengal.orchestration.content import ContentOrchestrator

        site = Site.from_config(root)
        ContentOrchestrator(site).discover()
    except Exception as exc:
        msg = f"Failed to load Bengal site from {root}: {exc}"
        raise ConfigError(msg) from exc
    return site


def register_routes(store: QueryStore, routes: Iterable[Route]) -> int:
    """Add *routes* to *store* (each also registers its component).  Returns the count."""
    count = 0
    for route in routes:
        store.add_route(route.path, route.component)
        count += 1
    return count
