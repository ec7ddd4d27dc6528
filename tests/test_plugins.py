"""
Swiftly: Plugin Pipeline Unit Tests
====================================

What we test:
    ✅ Ascending order for init and request, stable on ties
    ✅ Init data published to later plugins and to the request context
    ✅ Short-circuit when a plugin marks the response as sent
    ✅ Registration errors (empty / duplicate name, after init)
    ✅ Init failure aborts startup; requests before init are rejected
    ✅ Shutdown runs in reverse order and survives a failing hook
"""

import pytest
from starlette.requests import Request

from swiftly.context import RequestContext
from swiftly.exceptions import ConfigurationError, PluginInitError, ServiceUnavailableError
from swiftly.plugins.base import Plugin, PluginPipeline, define_plugin


def make_ctx(pipeline=None, method="GET", path="/x"):
    request = Request({
        "type": "http",
        "method": method,
        "path": path,
        "raw_path": path.encode(),
        "query_string": b"",
        "headers": [],
    })
    extensions = pipeline.extensions if pipeline else {}
    return RequestContext(request, extensions=extensions)


def recording_plugin(name, order, calls):
    return define_plugin(
        name,
        order=order,
        on_init=lambda app_ctx: calls.append(("init", name)) or name.upper(),
        on_request=lambda ctx, data: calls.append(("request", name)),
    )


class TestOrdering:
    @pytest.mark.asyncio
    async def test_init_and_request_follow_ascending_order(self):
        calls = []
        pipeline = PluginPipeline()
        for name, order in [("five", 5), ("one", 1), ("three", 3)]:
            pipeline.register(recording_plugin(name, order, calls))

        await pipeline.initialize(config=None)
        await pipeline.run(make_ctx(pipeline))

        assert [n for kind, n in calls if kind == "init"] == ["one", "three", "five"]
        assert [n for kind, n in calls if kind == "request"] == ["one", "three", "five"]

    @pytest.mark.asyncio
    async def test_ties_keep_registration_order(self):
        calls = []
        pipeline = PluginPipeline()
        for name in ["b", "a", "c"]:
            pipeline.register(recording_plugin(name, 0, calls))
        await pipeline.initialize(config=None)
        assert [p.name for p in pipeline.plugins] == ["b", "a", "c"]

    @pytest.mark.asyncio
    async def test_disabled_plugin_is_skipped(self):
        calls = []
        pipeline = PluginPipeline()
        pipeline.register(recording_plugin("on", 0, calls))
        off = recording_plugin("off", 1, calls)
        off.enabled = False
        pipeline.register(off)

        await pipeline.initialize(config=None)
        await pipeline.run(make_ctx(pipeline))
        assert ("init", "off") not in calls
        assert ("request", "off") not in calls


class TestInitData:
    @pytest.mark.asyncio
    async def test_later_plugins_read_earlier_init_data(self):
        seen = {}

        def second_init(app_ctx):
            seen["first"] = app_ctx.first
            return None

        pipeline = PluginPipeline()
        pipeline.register(define_plugin("second", order=2, on_init=second_init))
        pipeline.register(define_plugin("first", order=1, on_init=lambda app_ctx: {"ready": True}))

        await pipeline.initialize(config=None)
        assert seen["first"] == {"ready": True}

    @pytest.mark.asyncio
    async def test_init_data_reaches_the_request_context(self):
        async def on_init(app_ctx):
            return "token-service"

        pipeline = PluginPipeline()
        pipeline.register(define_plugin("tokens", on_init=on_init))
        await pipeline.initialize(config=None)

        ctx = make_ctx(pipeline)
        assert ctx.tokens == "token-service"
        with pytest.raises(AttributeError):
            ctx.missing_plugin

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self):
        calls = []
        pipeline = PluginPipeline()
        pipeline.register(recording_plugin("once", 0, calls))
        await pipeline.initialize(config=None)
        await pipeline.initialize(config=None)
        assert calls.count(("init", "once")) == 1


class TestShortCircuit:
    @pytest.mark.asyncio
    async def test_sent_response_stops_later_plugins(self):
        def gate(ctx, data):
            ctx.response.sent = True

        def mutate(ctx, data):
            ctx.user = "should not be set"

        pipeline = PluginPipeline()
        pipeline.register(define_plugin("late", order=10, on_request=mutate))
        pipeline.register(define_plugin("gate", order=0, on_request=gate))
        await pipeline.initialize(config=None)

        ctx = make_ctx(pipeline)
        assert await pipeline.run(ctx) is True
        assert ctx.user is None

    @pytest.mark.asyncio
    async def test_response_hooks_skip_plugins_that_never_ran(self):
        calls = []

        def gate(ctx, data):
            ctx.response.sent = True

        pipeline = PluginPipeline()
        pipeline.register(define_plugin(
            "early", order=-5, on_response=lambda ctx, data: calls.append("early")
        ))
        pipeline.register(define_plugin(
            "gate", order=0, on_request=gate, on_response=lambda ctx, data: calls.append("gate")
        ))
        pipeline.register(define_plugin(
            "late", order=10, on_response=lambda ctx, data: ctx.response.headers.update({"X-Late": "1"})
        ))
        await pipeline.initialize(config=None)

        ctx = make_ctx(pipeline)
        await pipeline.run(ctx)
        await pipeline.run_response_hooks(ctx)
        assert calls == ["early", "gate"]
        assert "x-late" not in ctx.response.headers

    @pytest.mark.asyncio
    async def test_request_before_initialization(self):
        pipeline = PluginPipeline()
        with pytest.raises(ServiceUnavailableError):
            await pipeline.run(make_ctx())


class TestRegistration:
    def test_empty_name(self):
        with pytest.raises(ConfigurationError):
            define_plugin("")

    def test_unnamed_subclass(self):
        with pytest.raises(ConfigurationError):
            PluginPipeline().register(Plugin())

    def test_duplicate_name(self):
        pipeline = PluginPipeline()
        pipeline.register(define_plugin("cache"))
        with pytest.raises(ConfigurationError):
            pipeline.register(define_plugin("cache", order=9))

    @pytest.mark.asyncio
    async def test_register_after_init(self):
        pipeline = PluginPipeline()
        await pipeline.initialize(config=None)
        with pytest.raises(ConfigurationError):
            pipeline.register(define_plugin("late"))

    @pytest.mark.asyncio
    async def test_init_failure_is_fatal(self):
        def boom(app_ctx):
            raise RuntimeError("no connection")

        pipeline = PluginPipeline()
        pipeline.register(define_plugin("database", on_init=boom))
        with pytest.raises(PluginInitError) as exc_info:
            await pipeline.initialize(config=None)
        assert exc_info.value.plugin == "database"
        assert not pipeline.initialized


class TestShutdown:
    @pytest.mark.asyncio
    async def test_reverse_order_and_failures_do_not_stop_others(self, caplog):
        calls = []

        def failing(data):
            raise RuntimeError("dispose failed")

        pipeline = PluginPipeline()
        pipeline.register(define_plugin("a", order=1, on_init=lambda c: "A", on_shutdown=lambda d: calls.append(d)))
        pipeline.register(define_plugin("b", order=2, on_shutdown=failing))
        pipeline.register(define_plugin("c", order=3, on_init=lambda c: "C", on_shutdown=lambda d: calls.append(d)))
        await pipeline.initialize(config=None)

        await pipeline.shutdown()
        assert calls == ["C", "A"]
        assert "Plugin 'b' failed during shutdown" in caplog.text
