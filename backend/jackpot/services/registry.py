import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple


@dataclass
class Connection:
    id: str
    user_id: Optional[str] = None
    # False once probed and not yet confirmed
    alive: bool = True


class ConnectionRegistry:
    """Open connections keyed by their opaque connection id (Socket.IO sid),
    with the user identity each one joined as."""

    def __init__(self):
        self._connections: Dict[str, Connection] = {}
        self._lock = threading.Lock()

    def register(self, conn_id: str) -> Connection:
        with self._lock:
            conn = self._connections.get(conn_id)
            if conn is None:
                conn = Connection(id=conn_id)
                self._connections[conn_id] = conn
            return conn

    def bind(self, conn_id: str, user_id: str) -> None:
        # Last bind wins; join policy is enforced by the socket handler
        with self._lock:
            conn = self._connections.setdefault(conn_id, Connection(id=conn_id))
            conn.user_id = user_id

    def resolve(self, conn_id: str) -> Optional[str]:
        conn = self._connections.get(conn_id)
        return conn.user_id if conn else None

    def unbind(self, conn_id: str) -> Optional[Connection]:
        with self._lock:
            return self._connections.pop(conn_id, None)

    def mark_alive(self, conn_id: str) -> None:
        conn = self._connections.get(conn_id)
        if conn is not None:
            conn.alive = True

    def live_connections(self) -> List[Connection]:
        with self._lock:
            return list(self._connections.values())

    def for_each_live_connection(self, fn: Callable[[Connection], None]) -> None:
        # Snapshot first so fn may unbind
        for conn in self.live_connections():
            fn(conn)

    def bound_connections(self) -> List[Tuple[str, str]]:
        return [(c.id, c.user_id) for c in self.live_connections() if c.user_id]

    def connections_for(self, user_id: str) -> List[str]:
        return [c.id for c in self.live_connections() if c.user_id == user_id]

    def __contains__(self, conn_id) -> bool:
        return conn_id in self._connections

    def __len__(self) -> int:
        return len(self._connections)
