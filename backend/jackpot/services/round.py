import logging
import random
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from jackpot.errors import DuplicateBet, InvalidBetAmount, PersistenceFailure, UnboundConnection
from jackpot.messages import BalanceUpdate, NewBet, RoundCancelled, RoundResult, Timer


class Phase(str, Enum):
    IDLE = 'idle'
    COLLECTING = 'collecting'
    RESOLVING = 'resolving'


@dataclass(frozen=True)
class Bet:
    user_id: str
    amount: int


@dataclass
class RoundState:
    phase: Phase = Phase.IDLE
    time_left: int = 0
    # user_id -> amount, insertion ordered (draw order)
    bets: Dict[str, int] = field(default_factory=dict)
    round_number: int = 0

    @property
    def pot(self) -> int:
        return sum(self.bets.values())

    def clear(self) -> None:
        self.phase = Phase.IDLE
        self.time_left = 0
        self.bets = {}


@dataclass
class RoundOutcome:
    round_number: int
    bets: Dict[str, int]
    cancelled: bool
    winner: Optional[str] = None
    total: int = 0
    persisted: bool = True


def coerce_amount(amount) -> int:
    """Return ``amount`` as a positive int or raise InvalidBetAmount.

    Integral floats and digit strings are accepted; booleans are not.
    """
    if isinstance(amount, bool):
        raise InvalidBetAmount()
    if isinstance(amount, int):
        value = amount
    elif isinstance(amount, float):
        if not amount.is_integer():
            raise InvalidBetAmount()
        value = int(amount)
    elif isinstance(amount, str):
        try:
            value = int(amount.strip())
        except ValueError:
            raise InvalidBetAmount()
    else:
        raise InvalidBetAmount()
    if value <= 0:
        raise InvalidBetAmount()
    return value


def weighted_draw(bets: Sequence[Tuple[str, int]], rng: Optional[random.Random] = None) -> str:
    """Pick one user with probability proportional to their stake.

    Draws uniformly in [0, total) and walks the bets in order, subtracting
    each amount; the first bet that takes the running value to <= 0 wins.
    """
    if not bets:
        raise ValueError('no bets to draw from')
    rng = rng or random
    total = sum(amount for _, amount in bets)
    remaining = rng.random() * total
    for user_id, amount in bets:
        remaining -= amount
        if remaining <= 0:
            return user_id
    # Float rounding only
    return bets[-1][0]


class RoundCoordinator:
    """Owns the single round: collects bets, runs the countdown and
    settles the pot exactly once per round.

    Phases cycle Idle -> Collecting -> Resolving -> Idle. All mutations run
    under one re-entrant lock, so bet acceptance, ticks and resolution never
    interleave even when the socket server dispatches on worker threads.
    """

    def __init__(
        self,
        ledger,
        registry,
        channel,
        duration: int = 30,
        tick_interval: float = 1.0,
        spawn: Optional[Callable] = None,
        sleep: Optional[Callable[[float], None]] = None,
        rng: Optional[random.Random] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.ledger = ledger
        self.registry = registry
        self.channel = channel
        self.duration = duration
        self.tick_interval = tick_interval
        self.state = RoundState()
        self._spawn = spawn
        self._sleep = sleep or time.sleep
        self._rng = rng or random.SystemRandom()
        self._lock = threading.RLock()
        self.logger = logger or logging.getLogger(__name__)

    # ---- Bets ----

    def place_bet(self, conn_id: str, amount) -> Bet:
        with self._lock:
            user_id = self.registry.resolve(conn_id)
            if user_id is None:
                raise UnboundConnection()
            value = coerce_amount(amount)
            record = self.ledger.get(user_id)
            if record is None or value > record.balance:
                raise InvalidBetAmount()
            if user_id in self.state.bets:
                raise DuplicateBet()

            self.state.bets[user_id] = value
            self.channel.broadcast(NewBet(user_id=user_id, amount=value))
            if self.state.phase == Phase.IDLE:
                self.start_countdown()
            self.logger.info(f"[bet-accepted] round={self.state.round_number} user={user_id} amount={value} pot={self.state.pot}")
            return Bet(user_id=user_id, amount=value)

    # ---- Countdown ----

    def start_countdown(self) -> bool:
        """Enter Collecting and start the countdown. No-op unless Idle."""
        with self._lock:
            if self.state.phase != Phase.IDLE:
                return False
            self.state.phase = Phase.COLLECTING
            self.state.time_left = self.duration
            self.state.round_number += 1
            round_number = self.state.round_number
            self.logger.info(f"[round-start] round={round_number} duration={self.duration} tick={self.tick_interval}s")
            self.channel.broadcast(Timer(time_left=self.state.time_left))
            if self._spawn is not None:
                self._spawn(self._run_countdown, round_number)
            return True

    def tick(self) -> bool:
        """Advance the countdown by one unit. Returns True once the round
        has been resolved."""
        with self._lock:
            if self.state.phase != Phase.COLLECTING:
                return False
            self.state.time_left -= 1
            self.channel.broadcast(Timer(time_left=max(0, self.state.time_left)))
            if self.state.time_left > 0:
                return False
            self.resolve()
            return True

    def _run_countdown(self, round_number: int) -> None:
        while True:
            self._sleep(self.tick_interval)
            with self._lock:
                if self.state.round_number != round_number or self.state.phase != Phase.COLLECTING:
                    return
                try:
                    if self.tick():
                        return
                except Exception:
                    self.logger.exception(f"[round-error] round={round_number}")
                    self.state.clear()
                    return

    # ---- Resolution ----

    def resolve(self) -> Optional[RoundOutcome]:
        """Settle the current round. Only acts while Collecting; the pool is
        cleared and the phase returns to Idle whatever happens."""
        with self._lock:
            state = self.state
            if state.phase != Phase.COLLECTING:
                return None
            state.phase = Phase.RESOLVING
            bets = list(state.bets.items())
            outcome = RoundOutcome(round_number=state.round_number, bets=dict(bets), cancelled=len(bets) < 2)
            try:
                if outcome.cancelled:
                    self.logger.info(f"[round-cancelled] round={outcome.round_number} bettors={len(bets)}")
                    self.channel.broadcast(RoundCancelled())
                    return outcome
                try:
                    self._settle(bets, outcome)
                except Exception:
                    # Settlement rolled back; no funds moved
                    self.channel.broadcast(RoundCancelled())
                    raise
                self.channel.broadcast(RoundResult(winner=outcome.winner, total=outcome.total))
                self._push_balances()
                return outcome
            finally:
                state.clear()

    def _settle(self, bets: List[Tuple[str, int]], outcome: RoundOutcome) -> None:
        outcome.total = sum(amount for _, amount in bets)
        try:
            for user_id, amount in bets:
                self.ledger.adjust(user_id, -amount)
            outcome.winner = weighted_draw(bets, self._rng)
            self.ledger.adjust(outcome.winner, outcome.total)
        except Exception:
            self.ledger.discard()
            raise
        try:
            self.ledger.persist()
        except PersistenceFailure as exc:
            outcome.persisted = False
            self.logger.error(f"[persist-failed] round={outcome.round_number} error={exc.message}")
        self.logger.info(
            f"[round-result] round={outcome.round_number} winner={outcome.winner} total={outcome.total} bettors={len(bets)}"
        )

    def _push_balances(self) -> None:
        user_ids = dict.fromkeys(user_id for _, user_id in self.registry.bound_connections())
        for user_id in user_ids:
            record = self.ledger.get(user_id)
            if record is None:
                continue
            for conn_id in self.registry.connections_for(user_id):
                self.channel.send(conn_id, BalanceUpdate(balance=record.balance))

    def snapshot(self) -> dict:
        with self._lock:
            return {
                'phase': self.state.phase.value,
                'timeLeft': self.state.time_left,
                'round': self.state.round_number,
                'bets': [{'userId': u, 'amount': a} for u, a in self.state.bets.items()],
                'pot': self.state.pot,
                'duration': self.duration,
            }
