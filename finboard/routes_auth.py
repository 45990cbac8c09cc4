# finboard/routes_auth.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .auth import get_current_user, token_for
from .config import SEED_DEMO_DATA
from .database import get_db
from .models import User
from .schemas import LoginIn, RegisterIn, user_to_dict
from . import users

router = APIRouter(prefix="/auth", tags=["Auth"])


def _session_payload(u: User, message: str) -> dict:
    return {
        "message": message,
        "token": token_for(u),
        "tokenType": "bearer",
        "user": user_to_dict(u),
    }


@router.post("/register")
def register(payload: RegisterIn, db: Session = Depends(get_db)):
    """
    Body:
    {
      "firstName": "Ada",
      "lastName": "Lovelace",
      "email": "ada@example.com",
      "password": "Test@123"
    }

    Creates the user, the four default accounts and (if enabled) sample
    transactions, then returns a bearer token.
    """
    u = users.register_user(
        db,
        payload.first_name,
        payload.last_name,
        payload.email,
        payload.password,
        seed_demo_data=SEED_DEMO_DATA,
    )
    return _session_payload(u, "User registered successfully")


@router.post("/login")
def login(payload: LoginIn, db: Session = Depends(get_db)):
    u = users.authenticate(db, payload.email, payload.password)
    return _session_payload(u, "Login successful")


@router.get("/me")
def me(current_user: User = Depends(get_current_user)):
    return user_to_dict(current_user)
