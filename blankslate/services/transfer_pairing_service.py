"""
Transfer pairing service

Responsibilities:
- Match a typed payee against account names
- Decide OUT/IN direction of a transfer
- Build both legs with a shared mirror id
- Find a leg's partner and enforce the exactly-one-partner rule
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple
from uuid import uuid4

from blankslate.errors import InvalidTransactionError, MirrorIntegrityError
from blankslate.models import CREDIT_CARD_GROUP
from blankslate.schemas import Account, Transaction
from blankslate.services.budget_book import BudgetBook
from blankslate.utils.money import ZERO, to_money
from blankslate.utils.normalization import normalize_account_token, normalize_payee

TRANSFER_PAYEE_PREFIX = "Transfer : "


def new_id() -> str:
    return uuid4().hex


class TransferPairingService:
    """
    Transfer legs

    A transfer is two transactions sharing ``mirror_id``: OUT (negative) on the
    source account and IN (positive) on the destination. Paying a card from a
    debit account categorizes the OUT leg to the card's payment item.
    """

    def resolve_counter_account(
        self,
        book: BudgetBook,
        payee: Optional[str],
        exclude_account_id: Optional[str] = None,
    ) -> Optional[Account]:
        """
        Account named by ``payee`` ("Savings", "Transfer : Savings", ...)

        Returns:
            the matching account, or None for an ordinary payee
        """
        token = normalize_payee(payee)
        if not token:
            return None
        for account in book.accounts.values():
            if account.id == exclude_account_id:
                continue
            if normalize_account_token(account.name) == token:
                return account
        return None

    def decide_direction(
        self,
        source: Account,
        counter: Account,
        amount: Decimal,
    ) -> Tuple[Account, Account, Decimal]:
        """
        OUT/IN direction from the signed amount entered on ``source``.

        Returns:
            (from_account, to_account, magnitude)
        """
        amount = to_money(amount)
        if amount == 0:
            raise InvalidTransactionError("A transfer needs a non-zero amount")
        if amount < 0:
            return source, counter, -amount
        return counter, source, amount

    def build_pair(
        self,
        from_account: Account,
        to_account: Account,
        on: date,
        amount: Decimal,
    ) -> Tuple[Transaction, Transaction]:
        """
        Build the OUT and IN legs of a transfer.

        Args:
            from_account: money leaves this account
            to_account: money arrives here
            on: transaction date for both legs
            amount: positive magnitude

        Returns:
            (out_leg, in_leg)
        """
        amount = to_money(amount)
        if amount <= ZERO:
            raise InvalidTransactionError("Transfer amount must be positive")
        if from_account.id == to_account.id:
            raise InvalidTransactionError("Cannot transfer to the same account")

        group_name = item_name = None
        if not from_account.is_credit and to_account.is_credit:
            # card payment: the debit side draws on the payment item
            group_name, item_name = CREDIT_CARD_GROUP, to_account.name

        mirror_id = new_id()
        out_leg = Transaction(
            id=new_id(),
            account_id=from_account.id,
            date=on,
            payee_name=f"{TRANSFER_PAYEE_PREFIX}{to_account.name}",
            group_name=group_name,
            item_name=item_name,
            amount=-amount,
            mirror_id=mirror_id,
        )
        in_leg = Transaction(
            id=new_id(),
            account_id=to_account.id,
            date=on,
            payee_name=f"{TRANSFER_PAYEE_PREFIX}{from_account.name}",
            amount=amount,
            mirror_id=mirror_id,
        )
        return out_leg, in_leg

    def find_mirror(self, book: BudgetBook, tx: Transaction) -> Optional[Transaction]:
        """
        Partner leg of ``tx``

        Raises:
            MirrorIntegrityError: ``tx`` has a mirror id but not exactly one partner
        """
        if not tx.mirror_id:
            return None
        partners = [
            other for other in book.transactions.values()
            if other.mirror_id == tx.mirror_id and other.id != tx.id
        ]
        if len(partners) != 1 or partners[0].account_id == tx.account_id:
            raise MirrorIntegrityError(tx.id, tx.mirror_id, found=len(partners))
        return partners[0]

    def expand_with_mirrors(
        self,
        book: BudgetBook,
        transaction_ids: Iterable[str],
    ) -> Tuple[List[Transaction], List[str]]:
        """
        Requested transactions plus their partners, without duplicates.

        Every mirror is verified before anything is returned, so a broken pair
        aborts the whole request.

        Returns:
            (transactions, missing_ids)
        """
        selected: List[Transaction] = []
        seen: set[str] = set()
        missing: List[str] = []
        for tx_id in transaction_ids:
            if tx_id in seen:
                continue
            tx = book.transactions.get(tx_id)
            if tx is None:
                missing.append(tx_id)
                continue
            for leg in (tx, self.find_mirror(book, tx)):
                if leg is not None and leg.id not in seen:
                    seen.add(leg.id)
                    selected.append(leg)
        return selected, missing
