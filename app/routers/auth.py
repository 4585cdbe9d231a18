"""
AIVox Dashboard - Authentication Router
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.database import get_db
from app import auth, crud, models, schemas
from app.exceptions import ConflictError, UnauthorizedError

router = APIRouter()

@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register_user(
    user_data: schemas.UserRegister,
    db: Session = Depends(get_db)
):
    """Register new user and log them in"""
    if crud.get_user_by_email(db, user_data.email):
        raise ConflictError("Email already in use")

    user = crud.create_user(
        db,
        email=user_data.email,
        password_hash=auth.get_password_hash(user_data.password),
        name=user_data.name,
    )

    token = auth.create_access_token(user)
    return {"success": True, "data": schemas.dump(schemas.User, user), "token": token}

@router.post("/login")
async def login(
    credentials: schemas.UserLogin,
    db: Session = Depends(get_db)
):
    """Exchange email and password for a bearer token"""
    user = auth.authenticate_user(db, credentials.email, credentials.password)
    if not user:
        raise UnauthorizedError("Invalid credentials")

    token = auth.create_access_token(user)
    return {"success": True, "token": token}

@router.get("/me")
async def read_users_me(current_user: models.User = Depends(auth.get_current_user)):
    """Get current user info"""
    return {"success": True, "data": schemas.dump(schemas.User, current_user)}
