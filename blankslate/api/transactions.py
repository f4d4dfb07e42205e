from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from blankslate.api.errors import budget_errors
from blankslate.core.deps import BudgetSession, get_budget_session
from blankslate.schemas import (
    AccountCreate,
    AccountOut,
    AccountUpdate,
    ImportResult,
    ImportTransactionsIn,
    TransactionCreate,
    TransactionOut,
    TransactionsBulkDelete,
    TransactionsBulkDeleteResult,
    TransactionUpdate,
    TransferCreate,
)

router = APIRouter(tags=["accounts", "transactions"])


# ==================== Accounts ====================


@router.get("/accounts", response_model=list[AccountOut])
def list_accounts(budget: BudgetSession = Depends(get_budget_session)):
    return budget.engine.list_accounts()


@router.post("/accounts", response_model=AccountOut, status_code=201)
def create_account(payload: AccountCreate, budget: BudgetSession = Depends(get_budget_session)):
    with budget_errors():
        account = budget.engine.create_account(
            payload.name,
            payload.type,
            balance=payload.balance,
            issuer=payload.issuer,
            on=payload.date,
        )
    budget.save()
    return account


@router.patch("/accounts/{account_id}", response_model=AccountOut)
def rename_account(account_id: str, payload: AccountUpdate, budget: BudgetSession = Depends(get_budget_session)):
    with budget_errors():
        account = budget.engine.rename_account(account_id, payload.name)
    budget.save()
    return account


@router.delete("/accounts/{account_id}", status_code=204)
def delete_account(account_id: str, budget: BudgetSession = Depends(get_budget_session)):
    with budget_errors():
        budget.engine.delete_account(account_id)
    budget.save()
    return Response(status_code=204)


# ==================== Transactions ====================


@router.get("/transactions", response_model=list[TransactionOut])
def list_transactions(
    account_id: Optional[str] = Query(None),
    budget: BudgetSession = Depends(get_budget_session),
):
    with budget_errors():
        return budget.engine.list_transactions(account_id)


@router.post("/transactions", response_model=TransactionOut, status_code=201)
def create_transaction(payload: TransactionCreate, budget: BudgetSession = Depends(get_budget_session)):
    with budget_errors():
        tx = budget.engine.post_transaction(
            payload.account_id,
            payload.date,
            payload.payee_name,
            payload.category_group,
            payload.category_item,
            payload.amount,
        )
    budget.save()
    return tx


@router.post("/transactions/transfer", response_model=list[TransactionOut], status_code=201)
def create_transfer(payload: TransferCreate, budget: BudgetSession = Depends(get_budget_session)):
    with budget_errors():
        legs = budget.engine.post_transfer(payload.from_account_id, payload.to_account_id, payload.date, payload.amount)
    budget.save()
    return list(legs)


@router.patch("/transactions/{transaction_id}", response_model=TransactionOut)
def update_transaction(
    transaction_id: str,
    payload: TransactionUpdate,
    budget: BudgetSession = Depends(get_budget_session),
):
    with budget_errors():
        tx = budget.engine.edit_transaction(
            transaction_id,
            on=payload.date,
            payee=payload.payee_name,
            group=payload.category_group,
            item=payload.category_item,
            amount=payload.amount,
        )
    budget.save()
    return tx


@router.delete("/transactions/{transaction_id}", response_model=TransactionsBulkDeleteResult)
def delete_transaction(transaction_id: str, budget: BudgetSession = Depends(get_budget_session)):
    with budget_errors():
        deleted = budget.engine.delete_transaction(transaction_id)
    budget.save()
    return TransactionsBulkDeleteResult(deleted=len(deleted), deleted_ids=deleted, missing=[])


@router.post("/transactions/bulk-delete", response_model=TransactionsBulkDeleteResult)
def bulk_delete_transactions(payload: TransactionsBulkDelete, budget: BudgetSession = Depends(get_budget_session)):
    with budget_errors():
        deleted, missing = budget.engine.delete_transactions(payload.ids)
    if deleted:
        budget.save()
    return TransactionsBulkDeleteResult(deleted=len(deleted), deleted_ids=deleted, missing=missing)


@router.post("/transactions/import", response_model=ImportResult)
def import_transactions(payload: ImportTransactionsIn, budget: BudgetSession = Depends(get_budget_session)):
    with budget_errors():
        created, skipped, command_id = budget.engine.import_transactions(payload.account_id, payload.rows)
    budget.save()
    return ImportResult(created=created, skipped=skipped, command_id=command_id)
