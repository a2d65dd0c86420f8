"""
POWERWATCH Redfish Service

Management controller facade: the PowerController interface and its
iDRAC Redfish implementation.
"""

from .redfish_client import (
    CommandAck,
    PowerController,
    RedfishClient,
    ServerDescription,
)

__all__ = [
    "CommandAck",
    "PowerController",
    "RedfishClient",
    "ServerDescription",
]
