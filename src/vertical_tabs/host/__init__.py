"""Host tab-service and panel channel adapters."""

from vertical_tabs.host.base import DeliveryError, HostError, PanelChannel, StaleTabError, TabHost
from vertical_tabs.host.memory import InMemoryPanelChannel, InMemoryTabHost

__all__ = [
    "DeliveryError",
    "HostError",
    "InMemoryPanelChannel",
    "InMemoryTabHost",
    "PanelChannel",
    "StaleTabError",
    "TabHost",
]
