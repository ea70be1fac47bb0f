"""Plugin Host -- versioned dispatch bus.

Architecture::

    channels.py    ChannelTable, Registration, Descriptor
    dispatch.py    DispatchEngine (priority fallback, decorator chains)
    interfaces.py  ChannelObject, InterfaceDefinition, InterfaceClient, Facade
    host.py        PluginHost (public surface)
"""

from pluginhost.host.channels import ChannelTable, Registration, RegistrationKind
from pluginhost.host.dispatch import DispatchEngine
from pluginhost.host.host import PluginHost
from pluginhost.host.interfaces import (
    ChannelCall,
    ChannelObject,
    Facade,
    InterfaceClient,
    InterfaceDefinition,
)

__all__ = [
    "PluginHost",
    "ChannelTable",
    "Registration",
    "RegistrationKind",
    "DispatchEngine",
    "ChannelCall",
    "ChannelObject",
    "Facade",
    "InterfaceClient",
    "InterfaceDefinition",
]
