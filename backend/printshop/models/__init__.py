from .catalog import Category, Customer, Product
from .cash import CashBalance, CashMovement
from .suppliers import Supplier, SupplierPayment
from .invoices import Invoice, InvoiceItem, ItemCost, InvoicePayment, DocumentSequence
from .debts import DebtAccount, Debt, DebtRepayment
from .inventory import InventoryItem, InventoryMovement
from .expenses import ExpenseType, Expense, Withdrawal

__all__ = [
    'Category', 'Customer', 'Product',
    'CashBalance', 'CashMovement',
    'Supplier', 'SupplierPayment',
    'Invoice', 'InvoiceItem', 'ItemCost', 'InvoicePayment', 'DocumentSequence',
    'DebtAccount', 'Debt', 'DebtRepayment',
    'InventoryItem', 'InventoryMovement',
    'ExpenseType', 'Expense', 'Withdrawal',
]
