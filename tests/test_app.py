"""Integration tests for whisker.app — end-to-end bootstrap on a real site."""

from __future__ import annotations

import io
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from whisker._errors import CompileError
from whisker.app import _collect_routes, _print_session_summary, build, dev
from whisker.config import WhiskerConfig
from whisker.config_loader import ENV_VAR
from whisker.observability.collector import StackCollector
from whisker.queries.compiler import static_query_id
from whisker.queries.differ import ReconcileResult
from whisker.state.models import Route


@pytest.fixture(autouse=True)
def _quiet_stderr(monkeypatch: pytest.MonkeyPatch) -> io.StringIO:
    monkeypatch.delenv(ENV_VAR, raising=False)
    buf = io.StringIO()
    monkeypatch.setattr(sys, "stderr", buf)
    return buf


@pytest.fixture
def routed_site(tmp_site: Path) -> Path:
    (tmp_site / "whisker.yaml").write_text("routes:\n  /: page.html\n  /home/: index.html\n")
    return tmp_site


class TestCollectRoutes:
    """_collect_routes — manifest plus Bengal content."""

    def test_manifest_only_without_content_dir(self, tmp_path: Path) -> None:
        config = WhiskerConfig(root=tmp_path, routes=(("/", "page.html"),))
        routes = _collect_routes(config)
        assert [r.path for r in routes] == ["/"]

    def test_manifest_wins_over_site(self, tmp_path: Path) -> None:
        (tmp_path / "content").mkdir()
        config = WhiskerConfig(root=tmp_path, routes=(("/", "home.html"),))
        site_routes = (
            Route(path="/", component="/other/page.html"),
            Route(path="/docs/", component="/other/page.html"),
        )
        with (
            patch("whisker.routes.loader.load_site", return_value=MagicMock()) as load_site,
            patch("whisker.routes.loader.routes_from_site", return_value=site_routes),
        ):
            routes = _collect_routes(config)

        load_site.assert_called_once_with(config.root)
        assert [r.path for r in routes] == ["/", "/docs/"]
        assert routes[0].component.endswith("/templates/home.html")


class TestBuild:
    """build — a single reconciliation pass."""

    def test_extracts_static_queries(self, routed_site: Path, _quiet_stderr: io.StringIO) -> None:
        result = build(routed_site)

        nav = f"{(routed_site / 'templates' / 'partials' / 'nav.html').as_posix()}"
        assert result.queries_will_run == frozenset({nav})
        assert result.enqueued_query_ids == (static_query_id(nav, routed_site.resolve()),)
        assert result.queries_will_not_run == frozenset()

        output = _quiet_stderr.getvalue()
        assert "Whisker" in output
        assert "Extracted 1 static query" in output
        assert "Reconciled in" in output
        assert "Watching for changes" not in output

    def test_route_query_without_route_is_reported(
        self, tmp_site: Path, _quiet_stderr: io.StringIO
    ) -> None:
        result = build(tmp_site)

        page = f"{(tmp_site / 'templates' / 'page.html').as_posix()}"
        assert result.queries_will_not_run == frozenset({page})
        assert "will not be run" in _quiet_stderr.getvalue()

    def test_compile_failure_raises(self, routed_site: Path) -> None:
        (routed_site / "templates" / "broken.html").write_text(
            "{% query %} x { ...Nope } {% endquery %}"
        )
        with pytest.raises(CompileError, match="Query extraction failed"):
            build(routed_site)


class TestDev:
    """dev — returns after bootstrap when the environment says production."""

    def test_production_env_skips_watching(
        self,
        routed_site: Path,
        monkeypatch: pytest.MonkeyPatch,
        _quiet_stderr: io.StringIO,
    ) -> None:
        monkeypatch.setenv(ENV_VAR, "production")
        dev(routed_site)
        output = _quiet_stderr.getvalue()
        assert "[build]" in output
        assert "Watching for changes" not in output


class TestSessionSummary:
    """_print_session_summary — totals from the event log on shutdown."""

    def test_totals(self, _quiet_stderr: io.StringIO) -> None:
        collector = StackCollector()
        collector.record_compile(success=False, reason="no queries")
        collector.record_reconcile(ReconcileResult(added=("sq-a",)), is_first_run=True)

        _print_session_summary(collector)

        output = _quiet_stderr.getvalue()
        assert "1 reconcile cycle," in output
        assert "1 static query change," in output
        assert "1 failed compile" in output
