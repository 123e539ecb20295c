# referrals/ledger.py
from contextlib import contextmanager
from decimal import Decimal
import logging

from sqlalchemy import case, update

from extensions import db
from logger import ledger_logger
from models import User, BalanceSource


logger = logging.getLogger(__name__)

# Channel -> column holding its spendable funds
SOURCE_COLUMNS = {
    BalanceSource.MAIN.value: User.withdrawable_balance,
    BalanceSource.YOUTUBE.value: User.youtube_balance,
    BalanceSource.TIKTOK.value: User.tiktok_balance,
}


# A channel reward only becomes withdrawable once the channel balance reaches this amount
CHANNEL_UNLOCK_THRESHOLD = Decimal("500")


class LedgerError(Exception):
    """Base ledger exception"""
    pass


class UserNotFoundError(LedgerError):
    pass


class InsufficientBalanceError(LedgerError):
    pass


@contextmanager
def atomic():
    """
    One unit of work on the shared session: committed when the block exits
    normally, rolled back (and the exception re-raised) otherwise.
    """
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def credit_balances(user_id: int, amount, include_welcome: bool = False) -> None:
    """
    Add `amount` to balance and withdrawable_balance in a single UPDATE so
    concurrent credits to the same user cannot overwrite each other.
    Does not commit.
    """
    amount = Decimal(str(amount))
    values = {
        'balance': User.balance + amount,
        'withdrawable_balance': User.withdrawable_balance + amount,
    }
    if include_welcome:
        values['welcome_bonus'] = User.welcome_bonus + amount

    result = db.session.execute(
        update(User)
        .where(User.id == user_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise UserNotFoundError(f"User {user_id} not found")

    ledger_logger.info(
        f"CREDIT user={user_id} amount={amount} welcome={include_welcome}"
    )


def credit_channel_reward(user_id: int, source: str, amount,
                          threshold=CHANNEL_UNLOCK_THRESHOLD) -> None:
    """
    Video reward: add `amount` to the channel balance and to balance. It is
    added to withdrawable_balance too when the channel balance after the credit
    is at least `threshold`; earlier rewards stay on the channel balance only.
    Does not commit.
    """
    if source not in (BalanceSource.YOUTUBE.value, BalanceSource.TIKTOK.value):
        raise LedgerError(f"Not a video channel: {source}")

    column = SOURCE_COLUMNS[source]
    amount = Decimal(str(amount))
    unlocked = case((column + amount >= Decimal(str(threshold)), amount), else_=Decimal("0"))

    result = db.session.execute(
        update(User)
        .where(User.id == user_id)
        .values({
            column: column + amount,
            User.balance: User.balance + amount,
            User.withdrawable_balance: User.withdrawable_balance + unlocked,
        })
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise UserNotFoundError(f"User {user_id} not found")

    ledger_logger.info(f"CHANNEL_CREDIT user={user_id} source={source} amount={amount}")


def credit_withdrawable(user_id: int, amount) -> None:
    """Formation reward: withdrawable_balance only. Does not commit."""
    amount = Decimal(str(amount))
    result = db.session.execute(
        update(User)
        .where(User.id == user_id)
        .values(withdrawable_balance=User.withdrawable_balance + amount)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise UserNotFoundError(f"User {user_id} not found")

    ledger_logger.info(f"WITHDRAWABLE_CREDIT user={user_id} amount={amount}")


def debit_source(user_id: int, source: str, amount) -> None:
    """
    Take `amount` out of a channel balance and add it to total_withdrawals.
    The WHERE clause refuses to drive the balance negative. Does not commit.
    """
    column = SOURCE_COLUMNS.get(source)
    if column is None:
        raise LedgerError(f"Unknown balance source: {source}")

    amount = Decimal(str(amount))
    result = db.session.execute(
        update(User)
        .where(User.id == user_id, column >= amount)
        .values({
            column: column - amount,
            User.total_withdrawals: User.total_withdrawals + amount,
        })
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        if db.session.get(User, user_id) is None:
            raise UserNotFoundError(f"User {user_id} not found")
        raise InsufficientBalanceError("Insufficient balance")

    ledger_logger.info(f"DEBIT user={user_id} source={source} amount={amount}")


def refund_source(user_id: int, source: str, amount) -> None:
    """Reverse a debit_source. Does not commit."""
    column = SOURCE_COLUMNS.get(source)
    if column is None:
        raise LedgerError(f"Unknown balance source: {source}")

    amount = Decimal(str(amount))
    result = db.session.execute(
        update(User)
        .where(User.id == user_id)
        .values({
            column: column + amount,
            User.total_withdrawals: User.total_withdrawals - amount,
        })
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise UserNotFoundError(f"User {user_id} not found")

    ledger_logger.info(f"REFUND user={user_id} source={source} amount={amount}")
