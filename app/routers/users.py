"""
AIVox Dashboard - User Management Router (admin only)
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app import auth, crud, models, schemas
from app.exceptions import NotFoundError, ValidationError

router = APIRouter(dependencies=[Depends(auth.require_admin)])

ASSIGNABLE_ROLES = (models.UserRole.USER.value, models.UserRole.ADMIN.value)

def get_user_or_404(db: Session, user_id: int) -> models.User:
    user = crud.get_user(db, user_id)
    if not user:
        raise NotFoundError(f"User with ID {user_id} not found")
    return user

@router.get("")
async def list_users(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    role: Optional[str] = Query(None),
    search: Optional[str] = Query(None, max_length=200),
    db: Session = Depends(get_db)
):
    """List users with filtering and pagination"""
    if role and role not in ASSIGNABLE_ROLES:
        raise ValidationError("role must be one of USER, ADMIN")

    users, total = crud.list_users(db, limit, offset, role=role, search=search)
    return {
        "success": True,
        "data": {
            "users": schemas.dump_many(schemas.User, users),
            "pagination": schemas.Pagination.build(total, limit, offset).model_dump(),
        },
    }

@router.get("/{user_id}")
async def get_user(user_id: int, db: Session = Depends(get_db)):
    """User details"""
    user = get_user_or_404(db, user_id)
    return {"success": True, "data": schemas.dump(schemas.User, user)}

@router.put("/{user_id}")
async def update_user(
    user_id: int,
    user_update: schemas.UserUpdate,
    identity: auth.Identity = Depends(auth.require_admin),
    db: Session = Depends(get_db)
):
    """Update a user's name or role"""
    values = user_update.model_dump(exclude_unset=True, exclude_none=True, mode="json")

    # Admins cannot demote themselves
    if identity.user_id == user_id and values.get("role") not in (None, models.UserRole.ADMIN.value):
        raise ValidationError("Cannot remove your own admin role")

    user = get_user_or_404(db, user_id)
    user = crud.update_user(db, user, values)
    return {"success": True, "data": schemas.dump(schemas.User, user)}

@router.delete("/{user_id}")
async def delete_user(
    user_id: int,
    identity: auth.Identity = Depends(auth.require_admin),
    db: Session = Depends(get_db)
):
    """Delete a user"""
    if identity.user_id == user_id:
        raise ValidationError("Cannot delete your own account")

    user = get_user_or_404(db, user_id)
    crud.delete_user(db, user)
    return {"success": True, "message": "User deleted successfully"}
