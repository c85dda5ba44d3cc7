from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from uuid import UUID

from app.core.config import settings
from app.database.database import get_db
from app.dependencies.organizationDependencies import OrganizationId
from app.modules.accounts.service import AccountService
from app.modules.accounts.schemas import (
    AccountCreate, AccountUpdate, AccountOut, AccountList,
    TransferCreate, TransferOut, TransferList
)

router = APIRouter(prefix="/accounts", tags=["Accounts"])


@router.get("/", response_model=AccountList)
def list_accounts(organization_id: OrganizationId, db: Session = Depends(get_db)):
    """All accounts of the organization, default first, with the total balance"""
    return AccountService(db).list_accounts(organization_id)


@router.post("/", response_model=AccountOut, status_code=status.HTTP_201_CREATED)
def create_account(
    account_data: AccountCreate,
    organization_id: OrganizationId,
    db: Session = Depends(get_db)
):
    return AccountService(db).create_account(account_data, organization_id)


@router.get("/transfers", response_model=TransferList)
def list_transfers(
    organization_id: OrganizationId,
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db)
):
    return AccountService(db).list_transfers(organization_id, limit, offset)


@router.post("/transfers", response_model=TransferOut, status_code=status.HTTP_201_CREATED)
def create_transfer(
    transfer_data: TransferCreate,
    organization_id: OrganizationId,
    db: Session = Depends(get_db)
):
    """
    Move money between two accounts of the organization.

    Both balances change in the same transaction as the transfer record.
    """
    return AccountService(db).create_transfer(transfer_data, organization_id)


@router.patch("/{account_id}", response_model=AccountOut)
def update_account(
    account_id: UUID,
    account_update: AccountUpdate,
    organization_id: OrganizationId,
    db: Session = Depends(get_db)
):
    return AccountService(db).update_account(account_id, account_update, organization_id)


@router.delete("/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_account(account_id: UUID, organization_id: OrganizationId, db: Session = Depends(get_db)):
    """Payments and expenses routed to the account are kept and become unattributed"""
    AccountService(db).delete_account(account_id, organization_id)


@router.post("/{account_id}/recalculate", response_model=AccountOut)
def recalculate_account(account_id: UUID, organization_id: OrganizationId, db: Session = Depends(get_db)):
    """Rebuild the balance from the opening balance, payments, expenses and transfers"""
    return AccountService(db).recalculate_balance(account_id, organization_id)
