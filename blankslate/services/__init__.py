"""
Services package

Budget engine and the services it is composed of.
"""

from .budget_book import BudgetBook
from .budget_engine import BudgetEngine
from .category_service import CategoryService
from .command_stack import Command, CommandStack
from .credit_card_service import CreditCardPaymentSynchronizer
from .month_ledger import MonthLedger
from .rollover_service import RolloverService
from .session_registry import BudgetSessionRegistry
from .storage_service import BudgetStorageService
from .transaction_bulk_service import TransactionBulkService
from .transaction_service import TransactionService
from .transfer_pairing_service import TransferPairingService

__all__ = [
    "BudgetBook",
    "BudgetEngine",
    "BudgetSessionRegistry",
    "BudgetStorageService",
    "CategoryService",
    "Command",
    "CommandStack",
    "CreditCardPaymentSynchronizer",
    "MonthLedger",
    "RolloverService",
    "TransactionBulkService",
    "TransactionService",
    "TransferPairingService",
]
