"""
Wire a host and an application from already discovered component definitions.

Discovery itself (scanning directories, parsing metadata) happens elsewhere;
``bootstrap`` only needs the definitions it produced.

Components look up shared modules through the ``get_module`` channel
instead of importing them. Every mapping passed as ``modules`` is layered
over the channel as a decorator; a provider answers a lookup only when
everything it wraps returned None::

    app = bootstrap(
        discovered,
        modules=[{"http": http_client}],
        on_error=lambda event: alerts.send(event.payload["error"]),
    )
    app.init()

    app.host.call("get_module", ["http"])  # http_client
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Any

from pluginhost.app.application import Application
from pluginhost.app.components import ComponentResolver
from pluginhost.core import events
from pluginhost.core.errors import PluginHostError
from pluginhost.core.events import Event, EventHandler
from pluginhost.core.logging import configure_logging, get_logger
from pluginhost.core.settings import PluginHostSettings, get_settings
from pluginhost.host.host import PluginHost

log = get_logger(__name__)

GET_MODULE_CHANNEL = "get_module"


def _no_module(name: str) -> None:
    return None


def _log_error(event: Event) -> None:
    error = event.payload.get("error")
    if isinstance(error, PluginHostError):
        log.error("host.error", source=event.source, **error.to_dict())
    else:
        log.error("host.error", source=event.source, error=str(error))


def provide_modules(host: PluginHost, modules: Mapping[str, Any], *, priority: int = 0) -> Callable[..., Any]:
    """Answer ``get_module`` lookups for the names in ``modules``.

    The channel's subscriber and providers nested inside this one (added
    later at the same priority) are asked first; this one only answers
    names they return None for. Returns the decorator so it can be removed
    again with ``host.remove_decorator``.
    """
    provided = dict(modules)

    def module_provider(next_: Callable[..., Any]) -> Callable[..., Any]:
        def get_module(name: str) -> Any:
            result = next_(name)
            if result is not None:
                return result
            return provided.get(name)

        return get_module

    host.decorate(GET_MODULE_CHANNEL, module_provider, priority=priority)
    log.debug("modules.provided", names=sorted(provided))
    return module_provider


def bootstrap(
    definitions: Mapping[str, Any] | Iterable[Any],
    *,
    settings: PluginHostSettings | None = None,
    resolver: ComponentResolver | None = None,
    on_error: EventHandler | None = None,
    modules: Mapping[str, Any] | Iterable[Mapping[str, Any]] | None = None,
    configure_logs: bool = False,
) -> Application:
    """Create a host and an application and add every definition to it.

    Args:
        definitions: Component definitions, or a mapping of id -> definition
        settings: Settings shared by host and application
        resolver: Resolves ``module`` references of definitions
        on_error: Receives every ``error`` event; logs them by default
        modules: Module mappings answering ``get_module`` lookups
        configure_logs: Configure structlog from ``settings.log_level`` and
            ``settings.json_logs`` first

    The application is returned uninitialized.
    """
    settings = settings or get_settings()
    if configure_logs:
        configure_logging(level=settings.log_level, json_format=settings.json_logs)

    host = PluginHost(settings)
    host.connect(GET_MODULE_CHANNEL, _no_module)

    if isinstance(modules, Mapping):
        modules = [modules]
    for mapping in modules or ():
        provide_modules(host, mapping)

    host.subscribe(events.ERROR, on_error or _log_error)

    app = Application(host, settings=settings, resolver=resolver)

    if isinstance(definitions, Mapping):
        definitions = definitions.values()
    for definition in definitions:
        app.add_component(definition)

    log.info("app.bootstrapped", components=len(app.components))
    return app


__all__ = ["GET_MODULE_CHANNEL", "bootstrap", "provide_modules"]
