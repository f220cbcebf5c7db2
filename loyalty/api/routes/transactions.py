"""Points request, approval and redemption endpoints."""
from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from loyalty.api.deps import get_db_session, invalidate_cached_reads
from loyalty.api.routes.auth import AuthenticatedActor, get_current_actor, require_role
from loyalty.core.errors import InvalidDescriptionError
from loyalty.models.enums import UserRole
from loyalty.schemas import PointsRequestCreate, RedemptionCreate, TransactionRead
from loyalty.services.approvals import (
    CountersignError,
    InsufficientPointsError,
    InvalidRequestError,
    InvalidTransitionError,
    RecordNotFoundError,
    approve_transaction,
    cancel_redemption,
    complete_redemption,
    dealer_approve,
    reject_transaction,
    request_redemption,
    submit_points_request,
)

router = APIRouter(prefix="/transactions")


@contextmanager
def _lifecycle_errors() -> Iterator[None]:
    try:
        yield
    except RecordNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except CountersignError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except (InvalidTransitionError, InsufficientPointsError) as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except (InvalidRequestError, InvalidDescriptionError) as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    invalidate_cached_reads()


@router.post("/earn", response_model=TransactionRead, status_code=status.HTTP_201_CREATED)
def submit_earn_request(
    payload: PointsRequestCreate,
    session: Session = Depends(get_db_session),
    actor: AuthenticatedActor = Depends(get_current_actor),
) -> TransactionRead:
    """Submit purchased bags for points, countersigned by ``dealer_id``."""

    with _lifecycle_errors():
        transaction = submit_points_request(
            session,
            user_id=actor.user_id,
            dealer_id=payload.dealer_id,
            bags=payload.bags,
            cement_type=payload.cement_type,
        )
    return TransactionRead.model_validate(transaction)


@router.post("/redeem", response_model=TransactionRead, status_code=status.HTTP_201_CREATED)
def submit_redemption(
    payload: RedemptionCreate,
    session: Session = Depends(get_db_session),
    actor: AuthenticatedActor = Depends(get_current_actor),
) -> TransactionRead:
    with _lifecycle_errors():
        transaction = request_redemption(session, user_id=actor.user_id, reward_id=payload.reward_id)
    return TransactionRead.model_validate(transaction)


@router.post("/{transaction_id}/dealer-approve", response_model=TransactionRead)
def countersign_transaction(
    transaction_id: str,
    session: Session = Depends(get_db_session),
    actor: AuthenticatedActor = Depends(require_role(UserRole.DEALER, UserRole.SUB_DEALER)),
) -> TransactionRead:
    with _lifecycle_errors():
        transaction = dealer_approve(session, transaction_id=transaction_id, dealer_id=actor.user_id)
    return TransactionRead.model_validate(transaction)


@router.post("/{transaction_id}/approve", response_model=TransactionRead)
def approve(
    transaction_id: str,
    session: Session = Depends(get_db_session),
    actor: AuthenticatedActor = Depends(require_role(UserRole.ADMIN)),
) -> TransactionRead:
    with _lifecycle_errors():
        transaction = approve_transaction(session, transaction_id=transaction_id)
    return TransactionRead.model_validate(transaction)


@router.post("/{transaction_id}/reject", response_model=TransactionRead)
def reject(
    transaction_id: str,
    session: Session = Depends(get_db_session),
    actor: AuthenticatedActor = Depends(require_role(UserRole.ADMIN)),
) -> TransactionRead:
    with _lifecycle_errors():
        transaction = reject_transaction(session, transaction_id=transaction_id)
    return TransactionRead.model_validate(transaction)


@router.post("/{transaction_id}/complete", response_model=TransactionRead)
def complete(
    transaction_id: str,
    session: Session = Depends(get_db_session),
    actor: AuthenticatedActor = Depends(require_role(UserRole.ADMIN)),
) -> TransactionRead:
    """Mark an approved redemption as dispatched."""

    with _lifecycle_errors():
        transaction = complete_redemption(session, transaction_id=transaction_id)
    return TransactionRead.model_validate(transaction)


@router.post("/{transaction_id}/cancel", response_model=TransactionRead)
def cancel(
    transaction_id: str,
    session: Session = Depends(get_db_session),
    actor: AuthenticatedActor = Depends(require_role(UserRole.ADMIN)),
) -> TransactionRead:
    with _lifecycle_errors():
        transaction = cancel_redemption(session, transaction_id=transaction_id)
    return TransactionRead.model_validate(transaction)


__all__ = [
    "approve",
    "cancel",
    "complete",
    "countersign_transaction",
    "reject",
    "router",
    "submit_earn_request",
    "submit_redemption",
]
