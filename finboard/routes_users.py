from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .auth import get_current_user, require_admin, require_owner
from .database import get_db
from .models import User
from .schemas import PasswordChangeIn, ProfileUpdateIn, user_to_dict
from . import users

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/{user_id}")
def get_profile(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_owner(current_user, user_id)
    return user_to_dict(users.require_user(db, user_id))


@router.put("/{user_id}")
def update_profile(
    user_id: int,
    payload: ProfileUpdateIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_owner(current_user, user_id)
    u = users.update_profile(db, user_id, payload.first_name, payload.last_name)
    return {"message": "Profile updated successfully", "user": user_to_dict(u)}


@router.put("/{user_id}/password")
def change_password(
    user_id: int,
    payload: PasswordChangeIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_owner(current_user, user_id)
    users.change_password(db, user_id, payload.current_password, payload.new_password)
    return {"message": "Password changed successfully"}


@router.get("/{user_id}/statistics")
def statistics(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_owner(current_user, user_id)
    return users.user_statistics(db, user_id)


@router.delete("/{user_id}")
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Admin only (``ADMIN_EMAILS``). Refused while the user still owns accounts."""
    require_admin(current_user)
    users.delete_user(db, user_id)
    return {"message": "User deleted successfully"}
