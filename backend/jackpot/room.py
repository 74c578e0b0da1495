"""Builds the room's components for one Flask app.

The room is owned by the app (``app.extensions['jackpot_room']``) rather
than by module globals, so every app instance, including each test app,
gets a fresh round and registry.
"""
from dataclasses import dataclass

from flask import current_app

from jackpot import socketio
from jackpot.services.broadcast import BroadcastChannel
from jackpot.services.ledger import SqlLedger
from jackpot.services.liveness import LivenessMonitor
from jackpot.services.registry import ConnectionRegistry
from jackpot.services.round import RoundCoordinator

NAMESPACE = '/ws'
PROBE_EVENT = 'probe'
EXTENSION_KEY = 'jackpot_room'


@dataclass
class Room:
    ledger: SqlLedger
    registry: ConnectionRegistry
    channel: BroadcastChannel
    coordinator: RoundCoordinator
    monitor: LivenessMonitor


def _make_spawner(app):
    """Background task launcher bound to ``app``.

    Returns None in TESTING mode (unless ENABLE_SCHEDULER_IN_TESTS) so tests
    drive the countdown and sweeps by hand.
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        return None

    def spawn(fn, *args):
        def _run():
            with app.app_context():
                fn(*args)
        return socketio.start_background_task(_run)

    return spawn


def _probe(conn_id: str) -> None:
    socketio.emit(PROBE_EVENT, {}, to=conn_id, namespace=NAMESPACE)


def _close(conn_id: str) -> None:
    socketio.server.disconnect(conn_id, namespace=NAMESPACE)


def build_room(app) -> Room:
    cfg = app.config
    spawn = _make_spawner(app)
    registry = ConnectionRegistry()
    channel = BroadcastChannel(socketio, namespace=NAMESPACE)
    ledger = SqlLedger(starting_balance=int(cfg.get('STARTING_BALANCE', 10)))
    coordinator = RoundCoordinator(
        ledger,
        registry,
        channel,
        duration=int(cfg.get('ROUND_DURATION_SEC', 30)),
        tick_interval=float(cfg.get('ROUND_TICK_SEC', 1.0)),
        spawn=spawn,
        sleep=socketio.sleep,
        logger=app.logger,
    )
    monitor = LivenessMonitor(
        registry,
        probe=_probe,
        close=_close,
        interval=float(cfg.get('LIVENESS_INTERVAL_SEC', 30)),
        spawn=spawn,
        sleep=socketio.sleep,
        logger=app.logger,
    )
    room = Room(ledger=ledger, registry=registry, channel=channel, coordinator=coordinator, monitor=monitor)
    app.extensions[EXTENSION_KEY] = room
    return room


def get_room() -> Room:
    return current_app.extensions[EXTENSION_KEY]
