"""
Swiftly: Plugin Pipeline
=========================

What:  Ordered cross-cutting hooks around every request.
How:   Plugins are sorted by `order` (ascending, stable on ties). `on_init`
       runs once per plugin at startup, sequentially; its return value is
       published under the plugin's name. `on_request` runs once per request
       in the same order until one of them marks the response as sent.
Who:   Registered through `Swiftly.use()`; driven by the dispatcher.

Hook Signatures (each may be sync or async):
    on_init(app_ctx)               → init data (or None)
    on_request(ctx, init_data)     → None; set ctx.response.sent to stop
    on_response(ctx, init_data)    → None; runs on every response path
    on_shutdown(init_data)         → None; reverse order at shutdown

Example:
    timing = define_plugin(
        "timing",
        order=4,
        on_response=lambda ctx, _: ctx.response.headers.__setitem__(
            "X-Elapsed", f"{ctx.elapsed_ms:.1f}"
        ),
    )
"""

import inspect
import logging
from typing import Any, Callable, Dict, List, Optional

from swiftly.context import AppContext, RequestContext
from swiftly.exceptions import ConfigurationError, PluginInitError, ServiceUnavailableError

logger = logging.getLogger(__name__)


async def _call(hook: Optional[Callable], *args: Any) -> Any:
    if hook is None:
        return None
    result = hook(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


class Plugin:
    """
    Base class for plugins.

    Subclasses set `name` and `order` and override the hooks they need.
    The defaults are no-ops.

    on_response runs only for plugins whose on_request was reached: after a
    short-circuit, later plugins see neither hook for that request.
    """

    name: str = ""
    order: int = 0
    enabled: bool = True

    def on_init(self, app_ctx: AppContext) -> Any:
        return None

    def on_request(self, ctx: RequestContext, init_data: Any) -> Any:
        return None

    def on_response(self, ctx: RequestContext, init_data: Any) -> Any:
        return None

    def on_shutdown(self, init_data: Any) -> Any:
        return None

    def __repr__(self) -> str:
        state = "" if self.enabled else ", disabled"
        return f"<{type(self).__name__} {self.name!r} order={self.order}{state}>"


class FunctionPlugin(Plugin):
    """Plugin assembled from plain callables by `define_plugin()`."""

    def __init__(
        self,
        name: str,
        order: int = 0,
        on_init: Optional[Callable] = None,
        on_request: Optional[Callable] = None,
        on_response: Optional[Callable] = None,
        on_shutdown: Optional[Callable] = None,
        enabled: bool = True,
    ):
        self.name = name
        self.order = order
        self.enabled = enabled
        self._hooks = {
            "on_init": on_init,
            "on_request": on_request,
            "on_response": on_response,
            "on_shutdown": on_shutdown,
        }

    def on_init(self, app_ctx):
        return _call(self._hooks["on_init"], app_ctx)

    def on_request(self, ctx, init_data):
        return _call(self._hooks["on_request"], ctx, init_data)

    def on_response(self, ctx, init_data):
        return _call(self._hooks["on_response"], ctx, init_data)

    def on_shutdown(self, init_data):
        return _call(self._hooks["on_shutdown"], init_data)


def define_plugin(
    name: str,
    order: int = 0,
    on_init: Optional[Callable] = None,
    on_request: Optional[Callable] = None,
    on_response: Optional[Callable] = None,
    on_shutdown: Optional[Callable] = None,
    enabled: bool = True,
) -> Plugin:
    """Build a plugin from callables. `name` must be a non-empty string."""
    if not isinstance(name, str) or not name.strip():
        raise ConfigurationError("Plugin name must be a non-empty string")
    if not isinstance(order, int) or isinstance(order, bool):
        raise ConfigurationError(f"Plugin '{name}' order must be an integer, got {order!r}")
    return FunctionPlugin(name, order, on_init, on_request, on_response, on_shutdown, enabled)


class PluginPipeline:
    """
    Owns the registered plugins and their init data.

    Lifecycle:
        register()*  → initialize() once → run() per request → shutdown()

    After `initialize()` the plugin list is frozen; registering raises.
    """

    def __init__(self) -> None:
        self._plugins: List[Plugin] = []
        self._extensions: Dict[str, Any] = {}
        self._initialized = False

    # ── Registration ──────────────────────────────────────────────────────

    def register(self, plugin: Plugin) -> None:
        if self._initialized:
            raise ConfigurationError(
                f"Cannot register plugin '{getattr(plugin, 'name', plugin)}' after initialization"
            )
        name = getattr(plugin, "name", None)
        if not isinstance(name, str) or not name.strip():
            raise ConfigurationError(f"Plugin {plugin!r} has no name")
        if any(existing.name == name for existing in self._plugins):
            raise ConfigurationError(f"Plugin '{name}' is already registered")
        self._plugins.append(plugin)
        # sorted() is stable: equal orders keep registration order
        self._plugins = sorted(self._plugins, key=lambda p: p.order)
        logger.debug("Registered plugin '%s' (order %d)", name, plugin.order)

    @property
    def plugins(self) -> List[Plugin]:
        return list(self._plugins)

    @property
    def active(self) -> List[Plugin]:
        return [p for p in self._plugins if p.enabled]

    @property
    def extensions(self) -> Dict[str, Any]:
        return dict(self._extensions)

    @property
    def initialized(self) -> bool:
        return self._initialized

    # ── Startup ───────────────────────────────────────────────────────────

    async def initialize(self, config: Any, registry: Any = None) -> AppContext:
        """
        Run every enabled plugin's on_init in ascending order.

        Raises:
            PluginInitError: the first failing plugin aborts startup
        """
        app_ctx = AppContext(config, registry)
        if self._initialized:
            for name, data in self._extensions.items():
                app_ctx.publish(name, data)
            return app_ctx

        for plugin in self.active:
            try:
                data = await _call(plugin.on_init, app_ctx)
            except ConfigurationError as exc:
                logger.error("Plugin '%s' failed to initialize: %s", plugin.name, exc.message)
                raise PluginInitError(plugin.name, exc, context=exc.context) from exc
            except Exception as exc:
                logger.error("Plugin '%s' failed to initialize: %s", plugin.name, exc, exc_info=True)
                raise PluginInitError(plugin.name, exc) from exc
            app_ctx.publish(plugin.name, data)
            self._extensions[plugin.name] = data
            logger.info("Plugin '%s' initialized (order %d)", plugin.name, plugin.order)

        self._initialized = True
        return app_ctx

    # ── Per request ───────────────────────────────────────────────────────

    async def run(self, ctx: RequestContext) -> bool:
        """
        Run on_request hooks in order.

        Returns:
            True when a plugin sent the response (pipeline short-circuited).
        Raises:
            ServiceUnavailableError: plugins are not initialized yet
        """
        if not self._initialized:
            raise ServiceUnavailableError(message="Server is still starting up")
        for plugin in self.active:
            ctx.plugins_run.append(plugin.name)
            await _call(plugin.on_request, ctx, self._extensions.get(plugin.name))
            if ctx.response.sent:
                logger.debug("[%s] Plugin '%s' sent the response", ctx.request_id, plugin.name)
                return True
        return False

    async def run_response_hooks(self, ctx: RequestContext) -> None:
        """Run on_response, in order, for the plugins whose on_request was reached."""
        if not self._initialized:
            return
        reached = set(ctx.plugins_run)
        for plugin in self.active:
            if plugin.name in reached:
                await _call(plugin.on_response, ctx, self._extensions.get(plugin.name))

    # ── Shutdown ──────────────────────────────────────────────────────────

    async def shutdown(self) -> None:
        """Run on_shutdown hooks in reverse order; one failure does not stop the rest."""
        if not self._initialized:
            return
        for plugin in reversed(self.active):
            try:
                await _call(plugin.on_shutdown, self._extensions.get(plugin.name))
            except Exception:
                logger.error("Plugin '%s' failed during shutdown", plugin.name, exc_info=True)
        self._initialized = False
        self._extensions.clear()
