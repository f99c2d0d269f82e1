"""Plan owner bookkeeping."""
from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cropcare.db.models.user import User

logger = logging.getLogger(__name__)


def get_or_create_user(db: Session, user_id: UUID) -> User:
    """Return the owner row for ``user_id``, inserting it on the caller's first plan."""
    owner = db.get(User, user_id)
    if owner is not None:
        return owner

    owner = User(id=user_id)
    db.add(owner)
    try:
        db.flush()
    except IntegrityError:
        # A concurrent first upsert for the same caller inserted the row.
        db.rollback()
        owner = db.get(User, user_id)
        if owner is None:
            raise
        return owner

    logger.info("Registered new plan owner %s", user_id)
    return owner
