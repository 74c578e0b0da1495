import threading
from dataclasses import dataclass
from typing import Dict, Optional, Protocol, Tuple

from sqlalchemy.exc import SQLAlchemyError

from jackpot import db
from jackpot.errors import InsufficientBalance, PersistenceFailure, UnknownUser
from jackpot.models import User


@dataclass(frozen=True)
class LedgerRecord:
    user_id: str
    balance: int
    secret: str


class Ledger(Protocol):
    """Durable mapping from user identity to balance and redemption secret.

    Implementations must apply each ``adjust`` atomically for the user it
    touches, so round settlement and the admin charge path never lose an
    update for the same user.
    """

    def get(self, user_id: str) -> Optional[LedgerRecord]:
        ...

    def adjust(self, user_id: str, delta: int, floor: Optional[int] = None) -> int:
        """Add ``delta`` to the balance and return the new balance.

        With ``floor`` set the change is refused (InsufficientBalance) when
        it would leave the balance below it.
        """
        ...

    def persist(self) -> None:
        """Write adjustments out. On failure raise PersistenceFailure but
        keep the adjusted balances and retry them on the next persist."""
        ...

    def discard(self) -> None:
        """Drop adjustments made since the last persist."""
        ...


class SqlLedger:
    """Ledger stored in the ``user`` table.

    Adjustments are single ``UPDATE ... SET balance = balance + :delta``
    statements inside the current transaction; ``persist`` commits it.

    When a commit fails the transaction is rolled back but its deltas are
    kept in an unsaved buffer: ``get`` and ``adjust`` report balances with
    the buffer applied, and the next ``persist`` writes it out again.
    """

    PENDING_KEY = 'jackpot_pending'

    def __init__(self, starting_balance: int = 10):
        self.starting_balance = starting_balance
        self._unsaved: Dict[str, int] = {}
        self._lock = threading.Lock()

    def _pending(self) -> Dict[str, int]:
        # Deltas of the open transaction, scoped to the current session
        return db.session.info.setdefault(self.PENDING_KEY, {})

    def _carried(self, user_id: str) -> int:
        with self._lock:
            return self._unsaved.get(user_id, 0)

    def get(self, user_id: str) -> Optional[LedgerRecord]:
        if not user_id:
            return None
        row = db.session.query(User.id, User.balance, User.secret).filter(User.id == user_id).first()
        if row is None:
            return None
        return LedgerRecord(user_id=row.id, balance=row.balance + self._carried(row.id), secret=row.secret)

    def adjust(self, user_id: str, delta: int, floor: Optional[int] = None) -> int:
        carried = self._carried(user_id)
        query = User.query.filter(User.id == user_id)
        if floor is not None:
            query = query.filter(User.balance + carried + delta >= floor)
        updated = query.update({User.balance: User.balance + delta}, synchronize_session=False)
        if not updated:
            if self.get(user_id) is None:
                raise UnknownUser()
            raise InsufficientBalance()
        pending = self._pending()
        pending[user_id] = pending.get(user_id, 0) + delta
        return db.session.query(User.balance).filter(User.id == user_id).scalar() + carried

    def create_if_absent(self, user_id: Optional[str] = None) -> Tuple[User, bool]:
        """Return the user for ``user_id``, creating a fresh one (new id and
        secret, starting balance) when it is missing. Commits on create."""
        if user_id:
            user = User.query.filter_by(id=user_id).first()
            if user is not None:
                return user, False
        user = User(balance=self.starting_balance)
        db.session.add(user)
        self.persist()
        return user, True

    def unsaved(self) -> Dict[str, int]:
        """Deltas from failed commits still waiting to be written."""
        with self._lock:
            return dict(self._unsaved)

    def persist(self) -> None:
        pending = self._pending()
        with self._lock:
            carried, self._unsaved = self._unsaved, {}
            try:
                for user_id, delta in carried.items():
                    User.query.filter(User.id == user_id).update(
                        {User.balance: User.balance + delta}, synchronize_session=False
                    )
                db.session.commit()
            except SQLAlchemyError as exc:
                db.session.rollback()
                for deltas in (carried, pending):
                    for user_id, delta in deltas.items():
                        self._unsaved[user_id] = self._unsaved.get(user_id, 0) + delta
                pending.clear()
                raise PersistenceFailure(str(exc)) from exc
        pending.clear()

    def discard(self) -> None:
        db.session.rollback()
        self._pending().clear()
