from flask_socketio import emit
from flask import current_app, request
from sqlalchemy.exc import SQLAlchemyError
from jackpot import socketio
from jackpot.errors import AlreadyJoined, JackpotError, UnknownUser
from jackpot.messages import ErrorMessage, Join, Joined, PlaceBet, Welcome, parse_message
from jackpot.room import NAMESPACE, Room, get_room
from jackpot.services.broadcast import MESSAGE_EVENT

SERVER_ERROR = 'Server error'


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _reply(message) -> None:
    emit(MESSAGE_EVENT, message.to_dict())


def handle_connect(auth=None):
    room = get_room()
    sid = _get_sid()
    room.registry.register(sid)
    room.monitor.start()
    current_app.logger.info(f"[ws-connect] conn={sid} from={request.remote_addr}")
    _reply(Welcome())


def handle_disconnect():
    # Placed bets stay in the pool; only the connection goes away
    conn = get_room().registry.unbind(_get_sid())
    if conn:
        current_app.logger.info(f"[ws-disconnect] conn={conn.id} user={conn.user_id}")


def _handle_join(room: Room, sid: str, msg: Join) -> None:
    bound = room.registry.resolve(sid)
    if bound is not None and bound != msg.user_id:
        raise AlreadyJoined()
    if room.ledger.get(msg.user_id) is None:
        raise UnknownUser()
    room.registry.bind(sid, msg.user_id)
    current_app.logger.info(f"[ws-join] conn={sid} user={msg.user_id}")
    _reply(Joined(user_id=msg.user_id))


def _handle_place_bet(room: Room, sid: str, msg: PlaceBet) -> None:
    room.coordinator.place_bet(sid, msg.amount)


_HANDLERS = {
    Join: _handle_join,
    PlaceBet: _handle_place_bet,
}


def handle_message(data=None):
    room = get_room()
    sid = _get_sid()
    room.registry.mark_alive(sid)
    try:
        msg = parse_message(data)
        _HANDLERS[type(msg)](room, sid, msg)
    except JackpotError as exc:
        current_app.logger.info(f"[ws-rejected] conn={sid} error={type(exc).__name__} message={exc.message}")
        _reply(ErrorMessage(message=exc.message))
    except SQLAlchemyError:
        current_app.logger.exception(f"[ws-failed] conn={sid}")
        room.ledger.discard()
        _reply(ErrorMessage(message=SERVER_ERROR))


def handle_probe_ack(data=None):
    get_room().registry.mark_alive(_get_sid())


def handle_ping(data=None):
    get_room().registry.mark_alive(_get_sid())
    emit('pong', data or {})


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on the room namespace.

    Room messages arrive as ``message`` events (or ``json`` when a client
    uses ``send(..., json=True)``).
    """
    socketio.on_event('connect', handle_connect, namespace=NAMESPACE)
    socketio.on_event('disconnect', handle_disconnect, namespace=NAMESPACE)
    socketio.on_event(MESSAGE_EVENT, handle_message, namespace=NAMESPACE)
    socketio.on_event('json', handle_message, namespace=NAMESPACE)
    socketio.on_event('probe_ack', handle_probe_ack, namespace=NAMESPACE)
    socketio.on_event('ping', handle_ping, namespace=NAMESPACE)
