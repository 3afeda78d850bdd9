"""Route discovery — which templates back a route.

Public API::

    from whisker.routes import register_routes, routes_from_config

    register_routes(store, routes_from_config(config))
"""

from whisker.routes.loader import (
    component_for,
    load_site,
    register_routes,
    routes_from_config,
    routes_from_site,
)

__all__ = [
    "component_for",
    "load_site",
    "register_routes",
    "routes_from_config",
    "routes_from_site",
]
