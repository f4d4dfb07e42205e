from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple

from blankslate.errors import BudgetValidationError, DuplicateNameError
from blankslate.models import AccountType, READY_TO_ASSIGN
from blankslate.schemas import Account, Transaction
from blankslate.services.budget_book import BudgetBook
from blankslate.services.changes import AddAccount, AddTransaction, Change, RemoveAccount, RemoveTransaction, RenameAccount
from blankslate.services.credit_card_service import CreditCardPaymentSynchronizer
from blankslate.services.transfer_pairing_service import TransferPairingService, new_id
from blankslate.utils.money import ZERO, to_money
from blankslate.utils.normalization import normalize_account_token

INITIAL_BALANCE_PAYEE = "Initial Balance"


class AccountService:
    def __init__(
        self,
        book: BudgetBook,
        synchronizer: CreditCardPaymentSynchronizer | None = None,
        pairing_service: TransferPairingService | None = None,
    ) -> None:
        self.book = book
        self.synchronizer = synchronizer or CreditCardPaymentSynchronizer()
        self.pairing_service = pairing_service or TransferPairingService()

    def get_all(self) -> list[Account]:
        return list(self.book.accounts.values())

    def build_create(
        self,
        name: str,
        type: AccountType,
        balance: Decimal | str | int | float = ZERO,
        issuer: Optional[str] = None,
        on: Optional[date] = None,
    ) -> Tuple[List[Change], Account]:
        """Account, its payment item (credit) and an "Initial Balance" transaction.

        Debit opening balances count as income; credit opening balances are
        uncategorized debt.
        """
        name = self._check_name(name)
        account = Account(id=new_id(), name=name, type=AccountType(type), issuer=issuer or None)
        changes: List[Change] = [AddAccount(account=account, index=len(self.book.accounts))]
        changes.extend(self.synchronizer.changes_for_new_account(self.book, account))

        opening = to_money(balance)
        if opening != 0:
            is_debit = account.type is AccountType.DEBIT
            changes.append(
                AddTransaction(
                    transaction=Transaction(
                        id=new_id(),
                        account_id=account.id,
                        date=on or date.today(),
                        payee_name=INITIAL_BALANCE_PAYEE,
                        group_name=READY_TO_ASSIGN if is_debit else None,
                        item_name=READY_TO_ASSIGN if is_debit else None,
                        amount=opening,
                    )
                )
            )
        return changes, account

    def build_rename(self, account_id: str, name: str) -> List[Change]:
        account = self.book.get_account(account_id)
        name = self._check_name(name, exclude_id=account.id)
        if name == account.name:
            return []
        changes: List[Change] = [RenameAccount(account_id=account.id, old=account.name, new=name)]
        changes.extend(self.synchronizer.changes_for_renamed_account(self.book, account, name))
        return changes

    def build_delete(self, account_id: str) -> List[Change]:
        """Transactions (with mirrors on other accounts), payment item, then the account."""
        account = self.book.get_account(account_id)
        own_ids = [tx.id for tx in self.book.transactions_for_account(account.id)]
        legs, _ = self.pairing_service.expand_with_mirrors(self.book, own_ids)
        changes: List[Change] = [RemoveTransaction(transaction=tx) for tx in legs]
        changes.extend(self.synchronizer.changes_for_removed_account(self.book, account))
        # balance left once its transactions are gone
        residual = account.balance - sum((tx.amount for tx in legs if tx.account_id == account.id), ZERO)
        snapshot = account.model_copy(update={"balance": residual})
        changes.append(RemoveAccount(account=snapshot, index=self.book.account_index(account.id)))
        return changes

    # ---- Helpers ---------------------------------------------------------
    def _check_name(self, name: str, exclude_id: Optional[str] = None) -> str:
        cleaned = (name or "").strip()
        if not cleaned:
            raise BudgetValidationError("Account name must not be empty")
        token = normalize_account_token(cleaned)
        for other in self.book.accounts.values():
            if other.id != exclude_id and normalize_account_token(other.name) == token:
                raise DuplicateNameError(cleaned, scope="accounts")
        return cleaned
