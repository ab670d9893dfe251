"""Live bin channel: client connections and the broadcast hub."""

from .connection import ClientConnection, Transport
from .hub import BroadcastHub

__all__ = ["BroadcastHub", "ClientConnection", "Transport"]
