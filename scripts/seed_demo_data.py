"""Seed script for a demo dealer network, reward catalog and purchases."""
from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from loyalty.api.routes.auth import encode_actor_token
from loyalty.db.session import engine, get_session
from loyalty.models import Base, Reward, Transaction, TransactionStatus, TransactionType, User, UserRole
from loyalty.services.conversion import CementType, describe_purchase, points_from_bags

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SEED_USERS = [
    ("admin@demo.local", "Asha", "Admin", UserRole.ADMIN, None),
    ("dealer@demo.local", "Dev", "Dealer", UserRole.DEALER, None),
    ("subdealer@demo.local", "Sana", "Subdealer", UserRole.SUB_DEALER, "dealer@demo.local"),
    ("contractor@demo.local", "Kiran", "Contractor", UserRole.CONTRACTOR, None),
]

SEED_REWARDS = [
    ("Safety Helmet", 100),
    ("Tool Kit", 500),
    ("Site Visit Voucher", 1000),
]

SEED_PURCHASES = [
    ("dealer@demo.local", 10, CementType.OPC),
    ("dealer@demo.local", 20, CementType.PPC),
    ("subdealer@demo.local", 8, CementType.OPC),
]


def seed(session: Session) -> dict[str, User]:
    """Insert demo rows that are not already present, keyed by email."""

    users = {user.email: user for user in session.scalars(select(User))}
    for email, first_name, last_name, role, creator_email in SEED_USERS:
        if email in users:
            logger.info("User %s already exists", email)
            continue
        creator = users.get(creator_email) if creator_email else None
        user = User(
            email=email,
            first_name=first_name,
            last_name=last_name,
            role=role,
            district="Demo District",
            created_by=creator.id if creator else None,
        )
        session.add(user)
        session.flush()
        users[email] = user
        logger.info("Added %s %s", role.value, email)

    titles = set(session.scalars(select(Reward.title)))
    for title, points_required in SEED_REWARDS:
        if title not in titles:
            session.add(Reward(title=title, points_required=points_required))
            logger.info("Added reward %s", title)

    if session.scalar(select(Transaction.id).limit(1)) is None:
        for email, bags, cement_type in SEED_PURCHASES:
            buyer = users[email]
            points = points_from_bags(bags, cement_type)
            session.add(
                Transaction(
                    user_id=buyer.id,
                    dealer_id=users["dealer@demo.local"].id,
                    type=TransactionType.EARNED,
                    status=TransactionStatus.APPROVED,
                    amount=points,
                    description=describe_purchase(bags, cement_type),
                )
            )
            buyer.points += points
        logger.info("Added %d approved purchases", len(SEED_PURCHASES))
    return users


def main() -> None:
    Base.metadata.create_all(bind=engine)
    with get_session() as session:
        users = seed(session)
    for email, user in users.items():
        logger.info("Bearer token for %s: %s", email, encode_actor_token(user.id, user.role))


if __name__ == "__main__":
    main()
