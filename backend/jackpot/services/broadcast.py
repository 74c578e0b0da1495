from jackpot.messages import OutboundMessage

MESSAGE_EVENT = 'message'


class BroadcastChannel:
    """Fan-out of room messages over one Socket.IO namespace.

    python-socketio encodes a broadcast packet once and only delivers it to
    sockets that are still connected; dead targets are left to the
    liveness monitor.
    """

    def __init__(self, socketio, namespace: str = '/ws'):
        self.socketio = socketio
        self.namespace = namespace

    def broadcast(self, message: OutboundMessage) -> None:
        self.socketio.emit(MESSAGE_EVENT, message.to_dict(), namespace=self.namespace)

    def send(self, conn_id: str, message: OutboundMessage) -> None:
        self.socketio.emit(MESSAGE_EVENT, message.to_dict(), to=conn_id, namespace=self.namespace)
