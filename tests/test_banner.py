"""Tests for whisker.banner — startup banner output."""

from __future__ import annotations

import io
import sys
from pathlib import Path
from unittest.mock import patch

from whisker.banner import print_banner
from whisker.config import WhiskerConfig


class TestPrintBanner:
    """Tests for the startup banner."""

    def _capture_banner(self, mode: str = "develop", **kwargs: object) -> str:
        """Call print_banner and capture stderr output."""
        buf = io.StringIO()
        with patch.object(sys, "stderr", buf):
            config = WhiskerConfig(root=Path("/tmp/test-site"), mode=mode)  # type: ignore[arg-type]
            print_banner(config, 5, **kwargs)
        return buf.getvalue()

    def test_develop_banner(self) -> None:
        output = self._capture_banner(load_ms=42.5, route_count=3)

        assert "Whisker" in output
        assert "5 components tracked" in output
        assert "42ms" in output
        assert "3 routes" in output
        assert "Watching for changes" in output

    def test_build_banner_does_not_watch(self) -> None:
        output = self._capture_banner(mode="build")

        assert "Whisker" in output
        assert "Watching for changes" not in output
        assert "build" in output

    def test_static_query_count(self) -> None:
        assert "1 static query" in self._capture_banner(static_query_count=1)
        assert "2 static queries" in self._capture_banner(static_query_count=2)

    def test_single_component(self) -> None:
        buf = io.StringIO()
        with patch.object(sys, "stderr", buf):
            print_banner(WhiskerConfig(root=Path("/tmp/test-site")), 1)
        assert "1 component tracked" in buf.getvalue()

    def test_templates_path_shown(self) -> None:
        assert "/tmp/test-site/templates" in self._capture_banner()

    def test_warnings_shown(self) -> None:
        output = self._capture_banner(warnings=["query will not run"])
        assert "query will not run" in output
