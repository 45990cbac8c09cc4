from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from .auth import get_current_user, require_owner
from .database import get_db
from .models import User
from .statements import statement_for_user

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.get("/pdf/user/{user_id}")
def report_pdf(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_owner(current_user, user_id)
    pdf = statement_for_user(db, current_user)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="statement_user_{user_id}.pdf"'},
    )
