# finboard/routes_imports.py
from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.orm import Session

from .auth import get_current_user
from .database import get_db
from .models import User
from .routes_accounts import owned_account
from .schemas import transaction_to_dict
from . import imports

router = APIRouter(prefix="/imports", tags=["Imports"])


@router.post("/preview")
async def import_preview(
    account_id: int = Query(..., alias="accountId"),
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    owned_account(db, account_id, current_user)
    content = await file.read()
    return imports.preview(file.filename, content)


@router.post("/commit", status_code=201)
async def import_commit(
    account_id: int = Query(..., alias="accountId"),
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Creates one PENDING transaction per row; settle them through PUT /transactions/{id}/status."""
    account = owned_account(db, account_id, current_user)
    content = await file.read()
    created = imports.commit(db, account, file.filename, content)
    return {"inserted": len(created), "transactions": [transaction_to_dict(t) for t in created]}
