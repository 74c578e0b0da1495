from jackpot import db
from flask_login import UserMixin
from datetime import datetime, timezone
import uuid


def _new_token():
    return str(uuid.uuid4())


class User(UserMixin, db.Model):
    """Ledger record: one row per bootstrapped visitor."""
    __tablename__ = 'user'
    id = db.Column(db.String(36), primary_key=True, default=_new_token)
    # Redemption secret shown to the visitor, redeemed in person with staff
    secret = db.Column(db.String(36), unique=True, nullable=False, default=_new_token)
    balance = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            'userId': self.id,
            'uuid': self.secret,
            'balance': self.balance,
        }
