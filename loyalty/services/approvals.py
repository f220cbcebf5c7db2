"""Points request, approval and redemption lifecycle.

Every balance change is committed in the same SERIALIZABLE transaction as the
status change that causes it.
"""
from __future__ import annotations

import logging
from collections.abc import Collection, Iterator
from contextlib import contextmanager
from datetime import date

from sqlalchemy import text
from sqlalchemy.orm import Session

from loyalty.core.errors import LoyaltyError
from loyalty.models import (
    AWAITING_STATUSES,
    Reward,
    Transaction,
    TransactionStatus,
    TransactionType,
    User,
)
from loyalty.services.conversion import CementType, describe_purchase, points_from_bags
from loyalty.services.scopes import SELLER_ROLES

logger = logging.getLogger(__name__)


class ApprovalError(LoyaltyError):
    """Base exception for points lifecycle errors."""


class RecordNotFoundError(ApprovalError):
    """Raised when a user, reward or transaction identifier does not exist."""


class InvalidTransitionError(ApprovalError):
    """Raised when a transaction is not in a state that allows the action."""


class InsufficientPointsError(ApprovalError):
    """Raised when a redemption exceeds the user's balance."""


class CountersignError(ApprovalError):
    """Raised when a dealer acts on a request addressed to another dealer."""


class InvalidRequestError(ApprovalError, ValueError):
    """Raised when a points request carries no billable bags."""


@contextmanager
def _serializable_transaction(session: Session) -> Iterator[None]:
    """Context manager enforcing SERIALIZABLE isolation for the transaction."""

    bind = session.get_bind()
    if bind is None:
        raise RuntimeError("Session is not bound to an engine")

    if bind.dialect.name == "sqlite":
        session.execute(text("BEGIN IMMEDIATE"))
    else:
        session.execute(text("SET TRANSACTION ISOLATION LEVEL SERIALIZABLE"))

    try:
        yield
        session.commit()
    except Exception:
        session.rollback()
        raise


def _get_user(session: Session, user_id: str) -> User:
    user = session.get(User, user_id, populate_existing=True)
    if user is None:
        raise RecordNotFoundError(f"User '{user_id}' was not found")
    return user


def _get_transaction(
    session: Session, transaction_id: str, *, type_: TransactionType | None = None
) -> Transaction:
    transaction = session.get(Transaction, transaction_id, populate_existing=True)
    if transaction is None or (type_ is not None and transaction.type is not type_):
        raise RecordNotFoundError(f"Transaction '{transaction_id}' was not found")
    return transaction


def _require_status(transaction: Transaction, allowed: Collection[TransactionStatus], action: str) -> None:
    if transaction.status not in allowed:
        raise InvalidTransitionError(
            f"Cannot {action} transaction '{transaction.id}' in status '{transaction.status.value}'"
        )


def _credit(session: Session, user_id: str, points: int) -> None:
    user = _get_user(session, user_id)
    user.points = (user.points or 0) + points


def submit_points_request(
    session: Session,
    *,
    user_id: str,
    dealer_id: str,
    bags: int,
    cement_type: CementType | str,
) -> Transaction:
    """Record a pending earned transaction for ``bags`` bags of ``cement_type``."""

    description = describe_purchase(bags, cement_type)
    amount = points_from_bags(bags, cement_type)
    if amount <= 0:
        raise InvalidRequestError("Bag count must be a positive whole number")

    with _serializable_transaction(session):
        _get_user(session, user_id)
        dealer = session.get(User, dealer_id)
        if dealer is None or dealer.role not in SELLER_ROLES:
            raise InvalidRequestError(f"User '{dealer_id}' cannot countersign points requests")

        transaction = Transaction(
            user_id=user_id,
            dealer_id=dealer_id,
            type=TransactionType.EARNED,
            status=TransactionStatus.PENDING,
            amount=amount,
            description=description,
        )
        session.add(transaction)
        session.flush()

    logger.info(
        "points request submitted",
        extra={"transaction_id": transaction.id, "user_id": user_id, "dealer_id": dealer_id, "points": amount},
    )
    session.refresh(transaction)
    return transaction


def dealer_approve(session: Session, *, transaction_id: str, dealer_id: str) -> Transaction:
    """Countersign a pending request addressed to ``dealer_id``."""

    with _serializable_transaction(session):
        transaction = _get_transaction(session, transaction_id, type_=TransactionType.EARNED)
        if transaction.dealer_id != dealer_id:
            raise CountersignError(f"Transaction '{transaction_id}' is not addressed to dealer '{dealer_id}'")
        _require_status(transaction, {TransactionStatus.PENDING}, "countersign")
        transaction.status = TransactionStatus.DEALER_APPROVED

    session.refresh(transaction)
    return transaction


def approve_transaction(session: Session, *, transaction_id: str) -> Transaction:
    """Approve a request; earned points are credited exactly once."""

    with _serializable_transaction(session):
        transaction = _get_transaction(session, transaction_id)
        if transaction.type is TransactionType.EARNED:
            _require_status(transaction, AWAITING_STATUSES, "approve")
            _credit(session, transaction.user_id, transaction.amount)
        else:
            # Redeemed points were reserved when the request was made.
            _require_status(transaction, {TransactionStatus.PENDING}, "approve")
        transaction.status = TransactionStatus.APPROVED

    logger.info("transaction approved", extra={"transaction_id": transaction_id})
    session.refresh(transaction)
    return transaction


def reject_transaction(session: Session, *, transaction_id: str) -> Transaction:
    with _serializable_transaction(session):
        transaction = _get_transaction(session, transaction_id)
        _require_status(transaction, AWAITING_STATUSES, "reject")
        if transaction.type is TransactionType.REDEEMED:
            _credit(session, transaction.user_id, transaction.amount)
        transaction.status = TransactionStatus.REJECTED

    logger.info("transaction rejected", extra={"transaction_id": transaction_id})
    session.refresh(transaction)
    return transaction


def request_redemption(
    session: Session, *, user_id: str, reward_id: str, today: date | None = None
) -> Transaction:
    """Reserve the reward's points and record a pending redemption."""

    with _serializable_transaction(session):
        user = _get_user(session, user_id)
        reward = session.get(Reward, reward_id, populate_existing=True)
        if reward is None:
            raise RecordNotFoundError(f"Reward '{reward_id}' was not found")
        current_day = today or date.today()
        if not reward.available or (reward.expiry_date is not None and reward.expiry_date < current_day):
            raise InvalidTransitionError(f"Reward '{reward_id}' is not available")
        balance = user.points or 0
        if balance < reward.points_required:
            raise InsufficientPointsError(
                f"User '{user_id}' has {balance} points; reward requires {reward.points_required}"
            )

        user.points = balance - reward.points_required
        transaction = Transaction(
            user_id=user_id,
            reward_id=reward_id,
            type=TransactionType.REDEEMED,
            status=TransactionStatus.PENDING,
            amount=reward.points_required,
            description=f"Redeemed: {reward.title}",
        )
        session.add(transaction)
        session.flush()

    logger.info(
        "redemption requested",
        extra={"transaction_id": transaction.id, "user_id": user_id, "reward_id": reward_id},
    )
    session.refresh(transaction)
    return transaction


def complete_redemption(session: Session, *, transaction_id: str) -> Transaction:
    with _serializable_transaction(session):
        transaction = _get_transaction(session, transaction_id, type_=TransactionType.REDEEMED)
        _require_status(transaction, {TransactionStatus.APPROVED}, "complete")
        transaction.status = TransactionStatus.COMPLETED

    session.refresh(transaction)
    return transaction


def cancel_redemption(session: Session, *, transaction_id: str) -> Transaction:
    """Cancel an open redemption and refund its points."""

    with _serializable_transaction(session):
        transaction = _get_transaction(session, transaction_id, type_=TransactionType.REDEEMED)
        _require_status(transaction, {TransactionStatus.PENDING, TransactionStatus.APPROVED}, "cancel")
        _credit(session, transaction.user_id, transaction.amount)
        transaction.status = TransactionStatus.CANCELLED

    logger.info("redemption cancelled", extra={"transaction_id": transaction_id})
    session.refresh(transaction)
    return transaction


__all__ = [
    "ApprovalError",
    "CountersignError",
    "InsufficientPointsError",
    "InvalidRequestError",
    "InvalidTransitionError",
    "RecordNotFoundError",
    "approve_transaction",
    "cancel_redemption",
    "complete_redemption",
    "dealer_approve",
    "reject_transaction",
    "request_redemption",
    "submit_points_request",
]
