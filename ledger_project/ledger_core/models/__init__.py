from .account import Account
from .auditlog import AuditLog
from .banking import BankAccount, BankTransaction
from .client import Client
from .entitymembership import Company, EntityMembership, User
from .expense import Expense
from .invoice import Invoice, InvoiceItem
from .journal import JournalEntry, JournalLine
from .recurring import RecurringProfile
