"""
pluginhost - In-process extensibility runtime.

- pluginhost.core: errors, logging, settings, identity, versions, events
- pluginhost.host: PluginHost (channels, decorators, interfaces, facades)
- pluginhost.app: Application (dependency-ordered component lifecycle)
"""

__version__ = "0.1.0"

from pluginhost.app import Application, Component, ComponentState, bootstrap, provide_modules
from pluginhost.core import *  # noqa
from pluginhost.host import PluginHost

__all__ = [
    "__version__",
    "Application",
    "Component",
    "ComponentState",
    "PluginHost",
    "bootstrap",
    "provide_modules",
]
