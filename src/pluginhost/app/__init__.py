"""Application -- dependency-ordered component lifecycle.

Architecture::

    graph.py        DependencyGraph (networkx)
    components.py   Component, ComponentState, ComponentInstance, resolvers
    application.py  Application (lifecycle manager)
    bootstrap.py    bootstrap(), provide_modules()
"""

from pluginhost.app.application import Application
from pluginhost.app.bootstrap import bootstrap, provide_modules
from pluginhost.app.components import (
    Component,
    ComponentInstance,
    ComponentResolver,
    ComponentState,
    ImportResolver,
    MappingResolver,
)
from pluginhost.app.graph import DependencyGraph

__all__ = [
    "Application",
    "bootstrap",
    "provide_modules",
    "Component",
    "ComponentInstance",
    "ComponentResolver",
    "ComponentState",
    "ImportResolver",
    "MappingResolver",
    "DependencyGraph",
]
