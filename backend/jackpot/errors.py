"""Errors raised by the room core.

Every error carries a short client-facing ``message``; socket handlers turn
any ``JackpotError`` into an ``error`` message for the sender and keep the
connection open.
"""


class JackpotError(Exception):
    default_message = 'Error'

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class MalformedMessage(JackpotError):
    default_message = 'Bad JSON'


class UnknownMessageType(JackpotError):
    default_message = 'Unknown type'


class InvalidBet(JackpotError):
    default_message = 'Invalid bet'


class UnboundConnection(InvalidBet):
    """A bet arrived on a connection that never joined."""

    default_message = 'Join before placing a bet'


class InvalidBetAmount(InvalidBet):
    default_message = 'Invalid bet'


class DuplicateBet(JackpotError):
    default_message = 'Already placed a bet'


class UnknownUser(JackpotError):
    default_message = 'Unknown user'


class AlreadyJoined(JackpotError):
    default_message = 'Already joined as another user'


class InsufficientBalance(JackpotError):
    default_message = 'Insufficient balance'


class PersistenceFailure(JackpotError):
    default_message = 'Could not persist ledger'
