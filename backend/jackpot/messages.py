"""Wire messages exchanged over the ``/ws`` namespace.

Every application message is a JSON object with a ``type`` field. Inbound
and outbound messages are closed sets of dataclasses; ``parse_message`` is
the only way raw client payloads enter the room.
"""
import json
from dataclasses import dataclass, fields
from typing import Any, ClassVar, Dict, Union

from jackpot.errors import MalformedMessage, UnknownMessageType


def _camel(name: str) -> str:
    head, *rest = name.split('_')
    return head + ''.join(part.title() for part in rest)


# ---- Client -> server ----

@dataclass(frozen=True)
class Join:
    type: ClassVar[str] = 'join'
    user_id: str


@dataclass(frozen=True)
class PlaceBet:
    type: ClassVar[str] = 'place-bet'
    # Left unvalidated here; the coordinator owns amount rules
    amount: Any


InboundMessage = Union[Join, PlaceBet]


def _parse_join(data: Dict[str, Any]) -> Join:
    user_id = data.get('userId')
    if not isinstance(user_id, str) or not user_id:
        raise MalformedMessage('userId is required')
    return Join(user_id=user_id)


def _parse_place_bet(data: Dict[str, Any]) -> PlaceBet:
    return PlaceBet(amount=data.get('amount'))


_PARSERS = {
    Join.type: _parse_join,
    PlaceBet.type: _parse_place_bet,
}


def parse_message(raw) -> InboundMessage:
    """Turn a socket payload (JSON text or an already decoded object) into
    an inbound message.

    Raises MalformedMessage for payloads that are not JSON objects and
    UnknownMessageType for objects whose ``type`` is not recognised.
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode('utf-8')
        except UnicodeDecodeError:
            raise MalformedMessage()
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            raise MalformedMessage()
    if not isinstance(raw, dict):
        raise MalformedMessage('Message must be a JSON object')
    msg_type = raw.get('type')
    parser = _PARSERS.get(msg_type) if isinstance(msg_type, str) else None
    if parser is None:
        raise UnknownMessageType()
    return parser(raw)


# ---- Server -> client ----

class OutboundMessage:
    type: ClassVar[str]

    def to_dict(self) -> Dict[str, Any]:
        payload = {'type': self.type}
        for f in fields(self):
            payload[_camel(f.name)] = getattr(self, f.name)
        return payload


@dataclass(frozen=True)
class Welcome(OutboundMessage):
    type: ClassVar[str] = 'welcome'
    message: str = 'Hello from server!'


@dataclass(frozen=True)
class Joined(OutboundMessage):
    type: ClassVar[str] = 'joined'
    user_id: str


@dataclass(frozen=True)
class Timer(OutboundMessage):
    type: ClassVar[str] = 'timer'
    time_left: int


@dataclass(frozen=True)
class NewBet(OutboundMessage):
    type: ClassVar[str] = 'new-bet'
    user_id: str
    amount: int


@dataclass(frozen=True)
class RoundResult(OutboundMessage):
    type: ClassVar[str] = 'round-result'
    winner: str
    total: int


@dataclass(frozen=True)
class RoundCancelled(OutboundMessage):
    type: ClassVar[str] = 'round-cancelled'


@dataclass(frozen=True)
class BalanceUpdate(OutboundMessage):
    type: ClassVar[str] = 'balance-update'
    balance: int


@dataclass(frozen=True)
class ErrorMessage(OutboundMessage):
    type: ClassVar[str] = 'error'
    message: str
