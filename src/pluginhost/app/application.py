"""
Application: dependency-ordered component lifecycle on top of a PluginHost.

Lifecycle of a component::

    registered ──init()──> initializing ──> ready
                                  │
                                  └──> init_failed

    any state ──remove_component()──> removed

``init()`` linearizes the dependency graph once, then initializes every
queued component in that order. A component that fails to initialize is
reported on the bus (``app.component_init_failed`` and ``error``) and the
remaining components still initialize. Components added after ``init()``
initialize immediately.

The application's own operations are published as the ``app`` interface on
its host (``app/init``, ``app/add_component``, ...), so extensions can call
or decorate them like any other channel. ``app/create_context`` decides the
context each component's ``create`` receives; by default it is the host.

Example::

    app = Application()
    app.add_component({"name": "storage", "offers": ["storage"], "create": make_storage})
    app.add_component({"name": "search", "requires": ["storage"], "create": make_search})
    app.init()  # storage, then search
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from pluginhost.app.components import (
    Component,
    ComponentInstance,
    ComponentResolver,
    ComponentState,
    ImportResolver,
    lifecycle_hook,
)
from pluginhost.app.graph import DependencyGraph, component_key
from pluginhost.core import events
from pluginhost.core.errors import (
    ComponentDestroyError,
    ComponentInitError,
    DuplicateComponentError,
    ErrorContext,
    HostClosedError,
    ResolutionError,
)
from pluginhost.core.events import Event, EventHandler
from pluginhost.core.logging import LogContext, get_logger
from pluginhost.core.settings import PluginHostSettings
from pluginhost.host.host import PluginHost
from pluginhost.host.interfaces import InterfaceDefinition

log = get_logger(__name__)

APP_INTERFACE = "app"
SOURCE = "app"


class Application:
    """Lifecycle manager for components sharing one ``PluginHost``."""

    def __init__(
        self,
        host: PluginHost | None = None,
        *,
        settings: PluginHostSettings | None = None,
        resolver: ComponentResolver | None = None,
    ) -> None:
        if host is None:
            host = PluginHost(settings)
        self.settings = settings or host.settings
        self._host = host
        self._resolver = resolver or ImportResolver()

        self._components: dict[str, dict[str, Component]] = {}
        self._states: dict[str, ComponentState] = {}
        self._instances: dict[str, ComponentInstance] = {}
        self._queue: list[Component] = []
        self._init_order: list[str] = []
        self._graph = DependencyGraph()
        self._initialized = False
        self._destroyed = False

        self._interface = host.create_interface(
            APP_INTERFACE,
            {
                "init": self.init,
                "destroy": self.destroy,
                "add_component": self.add_component,
                "has_component": self.has_component,
                "remove_component": self.remove_component,
                "create_context": self._default_context,
                "sort_by_dependencies": self.sort_by_dependencies,
            },
        )
        host.connect_interface(self._interface)

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def host(self) -> PluginHost:
        return self._host

    @property
    def interface(self) -> InterfaceDefinition:
        """The ``app`` interface connected on the host."""
        return self._interface

    @property
    def graph(self) -> DependencyGraph:
        return self._graph

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    @property
    def instances(self) -> dict[str, ComponentInstance]:
        """Live instances by component name."""
        return dict(self._instances)

    @property
    def components(self) -> list[Component]:
        return [component for versions in self._components.values() for component in versions.values()]

    def _ensure_open(self) -> None:
        if self._destroyed:
            raise HostClosedError("application")

    # =========================================================================
    # Registration
    # =========================================================================

    def add_component(self, definition: Any) -> Component:
        """Register a component and place it in the dependency graph.

        Before ``init()`` the component is queued; afterwards it initializes
        immediately.

        Raises:
            ValidationError: ``definition`` does not have the component shape
            DuplicateComponentError: name and version are already registered
            ResolutionError: the ``module`` reference cannot be resolved
        """
        self._ensure_open()
        component = Component.from_definition(definition, self.settings.default_component_version)

        if self.has_component(component.name, component.version):
            raise DuplicateComponentError(component.name, component.version)

        if not component.resolved:
            component = component.model_copy(update={"create": self._resolve(component.module)})

        self._components.setdefault(component.name, {})[component.version] = component
        self._states[component.key] = ComponentState.REGISTERED

        self._graph.add_component(component.name, component.version)
        for capability in component.offers:
            self._graph.offer(component.name, component.version, capability)
        for capability in component.requires:
            self._graph.require(component.name, component.version, capability)

        log.info(
            "component.added",
            component=component.key,
            offers=list(component.offers),
            requires=list(component.requires),
        )

        if self._initialized:
            self._try_init(component)
        else:
            self._queue.append(component)

        self._host.publish(events.COMPONENT_ADDED, SOURCE, component=component)
        return component

    def _resolve(self, reference: str) -> Any:
        try:
            return self._resolver.resolve(reference)
        except ResolutionError:
            raise
        except Exception as e:
            raise ResolutionError(reference, cause=e) from e

    def has_component(self, name: str, version: str | None = None) -> bool:
        """True when ``name`` (at ``version``, or any version) is registered and not removed."""
        versions = self._components.get(name)
        if not versions:
            return False
        return version is None or version in versions

    def remove_component(self, definition: Any, version: str | None = None) -> bool:
        """Remove a component, tearing down its live instance.

        ``definition`` is a component definition or a component name. The
        instance's ``destroy`` hook runs guarded: a failure is reported on
        the bus, never raised. Graph nodes and edges stay in place.

        Returns False when the component is not registered.
        """
        self._ensure_open()
        name, version = self._name_and_version(definition, version)

        versions = self._components.get(name)
        if not versions or version not in versions:
            return False

        component = versions.pop(version)
        if not versions:
            del self._components[name]

        self._queue = [queued for queued in self._queue if queued.key != component.key]
        if component.key in self._init_order:
            self._init_order.remove(component.key)

        instance = self._instances.get(name)
        if instance is not None and instance.version == version:
            del self._instances[name]
            self._teardown(component, instance)

        self._states[component.key] = ComponentState.REMOVED
        log.info("component.removed", component=component.key)
        self._host.publish(events.COMPONENT_REMOVED, SOURCE, component=component)
        return True

    def _name_and_version(self, definition: Any, version: str | None) -> tuple[str, str]:
        if isinstance(definition, str):
            name = definition
        elif isinstance(definition, Mapping):
            name = definition.get("name")
            version = version or definition.get("version")
        else:
            name = getattr(definition, "name", None)
            version = version or getattr(definition, "version", None)
        return name, version or self.settings.default_component_version

    def component_state(self, name: str, version: str | None = None) -> ComponentState | None:
        """Lifecycle state of ``name@version``; None if it was never added."""
        return self._states.get(f"{name}@{version or self.settings.default_component_version}")

    # =========================================================================
    # Ordering
    # =========================================================================

    def sort_by_dependencies(self, components: Iterable[Component]) -> list[Component]:
        """Sort ``components`` so every component follows what it requires.

        Components absent from the graph go last, in their given order.

        Raises:
            GraphCycleError: the dependency graph contains a cycle
        """
        order = {key: index for index, key in enumerate(self._graph.component_order())}
        fallback = len(order)
        return sorted(
            components,
            key=lambda component: order.get(component_key(component.name, component.version), fallback),
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def init(self) -> None:
        """Initialize every queued component in dependency order.

        Idempotent. Publishes ``app.ready`` once, after every attempt.

        Raises:
            GraphCycleError: the dependency graph cannot be linearized; the
                application stays uninitialized
        """
        self._ensure_open()
        if self._initialized:
            return

        queue = self.sort_by_dependencies(self._queue)

        for capability in self._graph.unresolved_capabilities():
            log.warning("capability.unresolved", capability=capability)

        self._initialized = True
        self._queue = []

        ready: list[str] = []
        failed: list[str] = []
        for component in queue:
            if self._states.get(component.key) is not ComponentState.REGISTERED:
                continue
            if self._try_init(component):
                ready.append(component.key)
            else:
                failed.append(component.key)

        log.info("app.ready", ready=len(ready), failed=len(failed))
        self._host.publish(events.READY, SOURCE, ready=ready, failed=failed)

    def _try_init(self, component: Component) -> bool:
        with LogContext(component=component.key):
            try:
                self._init_component(component)
            except Exception as error:
                self._init_failed(component, error)
                return False
        return True

    def _init_component(self, component: Component) -> None:
        self._states[component.key] = ComponentState.INITIALIZING
        log.debug("component.initializing")

        context = self.create_context(component)
        api = component.create(context)
        if api is None:
            api = {}

        init_hook = lifecycle_hook(api, "init")
        if init_hook is not None:
            init_hook()

        previous = self._instances.get(component.name)
        if previous is not None:
            log.warning("component.instance_replaced", previous_version=previous.version)

        self._instances[component.name] = ComponentInstance(
            name=component.name,
            version=component.version,
            context=context,
            api=api,
        )
        self._states[component.key] = ComponentState.READY
        self._init_order.append(component.key)

        log.info("component.initialized")
        self._host.publish(events.COMPONENT_INITIALIZED, SOURCE, component=component, api=api)

    def _init_failed(self, component: Component, error: Exception) -> None:
        self._states[component.key] = ComponentState.INIT_FAILED
        failure = ComponentInitError(
            f"Component `{component.key}` failed to initialize: {error}",
            context=ErrorContext(component=component.name, version=component.version),
            cause=error,
        )
        log.error("component.init_failed", error=str(error), error_type=type(error).__name__)
        self._host.publish(events.COMPONENT_INIT_FAILED, SOURCE, component=component, error=failure)
        self._host.publish(events.ERROR, SOURCE, error=failure)

    def _teardown(self, component: Component, instance: ComponentInstance) -> None:
        destroy_hook = lifecycle_hook(instance.api, "destroy")
        if destroy_hook is None:
            return

        try:
            destroy_hook()
        except Exception as error:
            failure = ComponentDestroyError(
                f"Component `{component.key}` failed to tear down: {error}",
                context=ErrorContext(component=component.name, version=component.version),
                cause=error,
            )
            log.error("component.destroy_failed", component=component.key, error=str(error))
            self._host.publish(events.COMPONENT_DESTROY_FAILED, SOURCE, component=component, error=failure)
            self._host.publish(events.ERROR, SOURCE, error=failure)

    def create_context(self, component: Component) -> Any:
        """Context handed to ``component.create``, via ``app/create_context``."""
        context = self._interface.create_context(component)
        return self._host if context is None else context

    def _default_context(self, component: Component) -> PluginHost:
        return self._host

    def destroy(self) -> None:
        """Remove every component, newest-initialized first, then release the host.

        The application and its host are unusable afterward.
        """
        if self._destroyed:
            return

        initialized = list(reversed(self._init_order))
        by_key = {component.key: component for component in self.components}
        ordered = [by_key[key] for key in initialized if key in by_key]
        ordered += [component for component in by_key.values() if component.key not in initialized]

        for component in ordered:
            self.remove_component(component)

        log.info("app.destroyed", removed=len(ordered))
        self._host.publish(events.DESTROYED, SOURCE, removed=[component.key for component in ordered])

        self._destroyed = True
        self._initialized = False
        self._host.destroy()

    # =========================================================================
    # Bus
    # =========================================================================

    def subscribe(self, pattern: str, handler: EventHandler) -> str:
        return self._host.subscribe(pattern, handler)

    def once(self, pattern: str, handler: EventHandler) -> str:
        return self._host.once(pattern, handler)

    def unsubscribe(self, subscription_id: str) -> bool:
        return self._host.unsubscribe(subscription_id)

    def publish(self, event: Event | str, source: str = SOURCE, **payload: Any) -> Event:
        return self._host.publish(event, source, **payload)


__all__ = ["APP_INTERFACE", "Application"]
