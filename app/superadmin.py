"""
AIVox Dashboard - Superadmin Bootstrap
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from app import auth, config, crud, models

logger = logging.getLogger(__name__)


def ensure_superadmin(
    db: Session,
    email: Optional[str] = None,
    password: Optional[str] = None,
    name: Optional[str] = None,
) -> Optional[models.User]:
    """Make sure the configured superadmin account exists.

    Safe to run on every startup: an existing account with the email is
    promoted if needed, never duplicated.
    """
    email = email or config.SUPERADMIN_EMAIL
    password = password or config.SUPERADMIN_PASSWORD
    name = name or config.SUPERADMIN_NAME

    if not email or not password:
        logger.warning("SUPERADMIN_EMAIL or SUPERADMIN_PASSWORD not set; skipping superadmin bootstrap")
        return None

    existing = crud.get_user_by_email(db, email)
    if existing:
        if existing.role != models.UserRole.SUPERADMIN.value:
            existing = crud.update_user(db, existing, {
                "role": models.UserRole.SUPERADMIN.value,
                "status": models.UserStatus.APPROVED.value,
            })
            logger.info(f"Updated user role to SUPERADMIN: {email}")
        return existing

    user = crud.create_user(
        db,
        email=email,
        password_hash=auth.get_password_hash(password),
        name=name,
        role=models.UserRole.SUPERADMIN.value,
        status=models.UserStatus.APPROVED.value,
    )
    logger.info(f"Created superadmin user: {email}")
    return user
