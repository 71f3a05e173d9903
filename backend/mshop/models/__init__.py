from .inventory import Product, StockUnit, Supplier, Purchase
from .customers import Customer
from .sales import Sale, SaleLine, InstallmentPlan, Installment
from .documents import SalesReturn, ReturnLine
from .ledger import LedgerHead, LedgerEntry
from .cash_transfers import CashTransferAccount, CashTransferTransaction
from .treasury import ExpenseCategory, Expense, RepairJob

__all__ = [
    'Product', 'StockUnit', 'Supplier', 'Purchase',
    'Customer',
    'Sale', 'SaleLine', 'InstallmentPlan', 'Installment',
    'SalesReturn', 'ReturnLine',
    'LedgerHead', 'LedgerEntry',
    'CashTransferAccount', 'CashTransferTransaction',
    'ExpenseCategory', 'Expense', 'RepairJob',
]
