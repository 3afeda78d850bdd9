"""Tests for whisker.queries.compiler — adapter and template compiler."""

from __future__ import annotations

import hashlib
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from tests.conftest import make_query
from whisker._errors import CompileError
from whisker.config import WhiskerConfig
from whisker.observability.collector import StackCollector
from whisker.observability.events import QueriesCompiled
from whisker.queries.compiler import (
    CompileFailed,
    CompilerAdapter,
    CompileSuccess,
    TemplateQueryCompiler,
    normalize_query,
    query_hash,
    static_query_id,
)
from whisker.queries.differ import reconcile
from whisker.state.store import QueryStore

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _template(root: Path, name: str, text: str) -> Path:
    path = root / "templates" / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------


class TestHelpers:
    """normalize_query, query_hash and static_query_id."""

    def test_normalize_collapses_whitespace(self) -> None:
        assert normalize_query("  a {\n   b\tc }\n") == "a { b c }"

    def test_hash_is_stable_and_short(self) -> None:
        assert query_hash("a { b }") == query_hash("\na { b }\n")
        assert len(query_hash("x")) == 16

    def test_hash_follows_formatting(self) -> None:
        assert query_hash("a { b }") != query_hash("a {  b }")

    def test_static_id_from_location(self, tmp_path: Path) -> None:
        path = f"{tmp_path}/templates/partials/Nav Bar.html"
        digest = hashlib.sha256(b"templates/partials/Nav Bar.html").hexdigest()[:8]
        assert static_query_id(path, tmp_path) == f"sq--templates-partials-nav-bar-html-{digest}"

    def test_static_id_outside_root(self, tmp_path: Path) -> None:
        digest = hashlib.sha256(b"/elsewhere/x.html").hexdigest()[:8]
        assert static_query_id("/elsewhere/x.html", tmp_path) == f"sq--elsewhere-x-html-{digest}"

    def test_static_id_keeps_lookalike_paths_apart(self, tmp_path: Path) -> None:
        ids = {
            static_query_id(f"{tmp_path}/templates/{name}", tmp_path)
            for name in ("a/b.html", "a-b.html", "A.html", "a.html")
        }
        assert len(ids) == 4


# ---------------------------------------------------------------------------
# CompilerAdapter
# ---------------------------------------------------------------------------


class TestCompilerAdapter:
    """CompilerAdapter — normalizes any compiler's output."""

    @pytest.mark.asyncio
    async def test_sync_compiler_success(self) -> None:
        query = make_query("/s/a.html", "Q", static=True)
        adapter = CompilerAdapter(lambda *, parent_span=None: {"/s/a.html": query})

        result = await adapter.compile()

        assert isinstance(result, CompileSuccess)
        assert dict(result.queries) == {"/s/a.html": query}

    @pytest.mark.asyncio
    async def test_async_compiler_success(self) -> None:
        query = make_query("/s/a.html", "Q")

        async def compiler(*, parent_span=None):
            return {"/s/a.html": query}

        result = await CompilerAdapter(compiler).compile()
        assert isinstance(result, CompileSuccess)

    @pytest.mark.asyncio
    async def test_parent_span_forwarded(self) -> None:
        compiler = MagicMock(return_value={"/a": make_query("/a", "Q")})
        span = object()
        await CompilerAdapter(compiler).compile(parent_span=span)
        compiler.assert_called_once_with(parent_span=span)

    @pytest.mark.asyncio
    async def test_keys_are_slash_normalized(self) -> None:
        query = make_query("C:/s/a.html", "Q")
        adapter = CompilerAdapter(lambda *, parent_span=None: {"C:\\s\\a.html": query})
        result = await adapter.compile()
        assert isinstance(result, CompileSuccess)
        assert list(result.queries) == ["C:/s/a.html"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("output", [None, False, {}])
    async def test_empty_output_is_failure(self, output: object) -> None:
        result = await CompilerAdapter(lambda *, parent_span=None: output).compile()
        assert isinstance(result, CompileFailed)

    @pytest.mark.asyncio
    async def test_exception_is_reported_failure(self) -> None:
        reporter = MagicMock()

        def compiler(*, parent_span=None):
            raise RuntimeError("syntax error")

        result = await CompilerAdapter(compiler, reporter=reporter).compile()

        assert result == CompileFailed(reason="syntax error")
        reporter.error.assert_called_once()
        assert reporter.error.call_args.args[0] == "Query compilation failed"

    @pytest.mark.asyncio
    async def test_events_recorded(self) -> None:
        collector = StackCollector()
        ok = CompilerAdapter(
            lambda *, parent_span=None: {"/a": make_query("/a", "Q")}, collector=collector
        )
        bad = CompilerAdapter(lambda *, parent_span=None: None, collector=collector)

        await ok.compile()
        await bad.compile()

        events = collector.log.query(event_type=QueriesCompiled)
        assert [e.success for e in events] == [False, True]
        assert events[1].query_count == 1
        assert events[0].reason == "compiler returned no queries"


# ---------------------------------------------------------------------------
# TemplateQueryCompiler
# ---------------------------------------------------------------------------


class TestTemplateQueryCompiler:
    """TemplateQueryCompiler — extracts query blocks from templates."""

    def test_compiles_site(self, config: WhiskerConfig) -> None:
        queries = TemplateQueryCompiler(config).compile()
        templates = config.templates_path.as_posix()

        page = queries[f"{templates}/page.html"]
        assert page.is_static_query is False
        assert page.id == f"{templates}/page.html"
        assert page.name == "page"
        assert page.text == "page { title ...Meta }\nfragment Meta meta { description }"

        nav = queries[f"{templates}/partials/nav.html"]
        assert nav.is_static_query is True
        assert nav.id == static_query_id(f"{templates}/partials/nav.html", config.root)
        assert nav.name == "Nav"
        assert nav.text == "menu { items { title url } }"

        # Templates without a query block are not reported.
        assert f"{templates}/index.html" not in queries
        assert f"{templates}/fragments.html" not in queries

    def test_fragment_edit_changes_text_not_hash(self, config: WhiskerConfig) -> None:
        compiler = TemplateQueryCompiler(config)
        page = f"{config.templates_path.as_posix()}/page.html"
        before = compiler.compile()[page]

        _template(
            config.root, "fragments.html",
            '{% fragment "Meta" %} meta { description keywords } {% endfragment %}',
        )
        after = compiler.compile()[page]

        assert after.hash == before.hash
        assert after.text != before.text

    def test_transitive_fragments(self, tmp_path: Path) -> None:
        _template(tmp_path, "a.html", "{% query %} a { ...One } {% endquery %}")
        _template(
            tmp_path, "f.html",
            '{% fragment "One" %} x { ...Two } {% endfragment %}'
            '{% fragment "Two" %} y {% endfragment %}',
        )
        queries = TemplateQueryCompiler(WhiskerConfig(root=tmp_path)).compile()
        text = queries[f"{tmp_path.as_posix()}/templates/a.html"].text
        assert text == "a { ...One }\nfragment One x { ...Two }\nfragment Two y"

    def test_inline_type_condition_is_not_a_spread(self, tmp_path: Path) -> None:
        _template(tmp_path, "a.html", "{% query %} a { ... on Post { id } } {% endquery %}")
        queries = TemplateQueryCompiler(WhiskerConfig(root=tmp_path)).compile()
        assert queries[f"{tmp_path.as_posix()}/templates/a.html"].text == "a { ... on Post { id } }"

    def test_unknown_fragment(self, tmp_path: Path) -> None:
        _template(tmp_path, "a.html", "{% query %} a { ...Missing } {% endquery %}")
        with pytest.raises(CompileError, match='Unknown fragment "Missing"'):
            TemplateQueryCompiler(WhiskerConfig(root=tmp_path)).compile()

    def test_duplicate_fragment(self, tmp_path: Path) -> None:
        _template(tmp_path, "a.html", '{% fragment "F" %} a {% endfragment %}')
        _template(tmp_path, "b.html", '{% fragment "F" %} b {% endfragment %}')
        with pytest.raises(CompileError, match='Duplicate fragment "F"'):
            TemplateQueryCompiler(WhiskerConfig(root=tmp_path)).compile()

    def test_two_queries_in_one_template(self, tmp_path: Path) -> None:
        _template(
            tmp_path, "a.html",
            "{% query %} a {% endquery %}{% static_query %} b {% endstatic_query %}",
        )
        with pytest.raises(CompileError, match="only one is allowed"):
            TemplateQueryCompiler(WhiskerConfig(root=tmp_path)).compile()

    def test_unbalanced_tags(self, tmp_path: Path) -> None:
        _template(tmp_path, "a.html", "{% query %} a { title ")
        with pytest.raises(CompileError, match="Unbalanced"):
            TemplateQueryCompiler(WhiskerConfig(root=tmp_path)).compile()

    def test_unnamed_fragment(self, tmp_path: Path) -> None:
        _template(tmp_path, "a.html", "{% fragment %} a {% endfragment %}")
        with pytest.raises(CompileError, match="needs a name"):
            TemplateQueryCompiler(WhiskerConfig(root=tmp_path)).compile()

    def test_call_reports_and_returns_none(self, tmp_path: Path) -> None:
        _template(tmp_path, "a.html", "{% query %} a { ...Missing } {% endquery %}")
        reporter = MagicMock()
        compiler = TemplateQueryCompiler(WhiskerConfig(root=tmp_path), reporter=reporter)

        assert compiler() is None
        reporter.error.assert_called_once()
        assert isinstance(reporter.error.call_args.args[1], CompileError)

    def test_store_components_outside_globs(self, tmp_path: Path) -> None:
        outside = tmp_path / "layouts" / "post.html"
        outside.parent.mkdir()
        outside.write_text("{% query %} post { title } {% endquery %}")
        store = QueryStore()
        store.add_component(outside.as_posix())

        compiler = TemplateQueryCompiler(WhiskerConfig(root=tmp_path), store=store)

        assert outside in compiler.source_files()
        assert outside.as_posix() in compiler.compile()

    def test_store_components_missing_on_disk_are_skipped(self, tmp_path: Path) -> None:
        store = QueryStore()
        store.add_component(f"{tmp_path.as_posix()}/gone.html")
        compiler = TemplateQueryCompiler(WhiskerConfig(root=tmp_path), store=store)
        assert compiler.source_files() == []

    def test_whitespace_control_tags(self, tmp_path: Path) -> None:
        _template(tmp_path, "a.html", '{%- static_query "S" -%} s {%- endstatic_query -%}')
        queries = TemplateQueryCompiler(WhiskerConfig(root=tmp_path)).compile()
        assert queries[f"{tmp_path.as_posix()}/templates/a.html"].is_static_query

    def test_lookalike_static_templates_reconcile_once(self, tmp_path: Path) -> None:
        nested = _template(tmp_path, "a/b.html", "{% static_query %} b { x } {% endstatic_query %}")
        flat = _template(tmp_path, "a-b.html", "{% static_query %} ab { y } {% endstatic_query %}")
        store = QueryStore()
        for path in (nested, flat):
            store.add_component(path.as_posix())
        queries = TemplateQueryCompiler(WhiskerConfig(root=tmp_path), store=store).compile()

        assert queries[nested.as_posix()].id != queries[flat.as_posix()].id

        first = reconcile(store.snapshot(), queries, is_first_run=True)
        store.dispatch_many(first.commands)
        second = reconcile(store.snapshot(), queries)

        assert len(first.enqueued_query_ids) == 2
        assert len(store.static_queries()) == 2
        assert second.commands == ()
        assert second.enqueued_query_ids == ()
