"""Room host: wraps the rules engine with websockets and a turn clock."""

from .server import RoomServer

__all__ = ["RoomServer"]
