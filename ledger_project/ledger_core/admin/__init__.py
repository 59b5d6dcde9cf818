from .account import AccountAdmin
from .actions import (issue_invoices, pause_profiles, post_journal_entries,
                      resume_profiles, reverse_journal_entries)
from .auditlog import AuditLogAdmin
from .banking import BankAccountAdmin, BankTransactionAdmin
from .forms import (InvoiceItemForm, JournalLineInlineForm,
                    UserAdminChangeForm, UserAdminCreationForm)
from .inlines import InvoiceItemInline, JournalLineInline
from .invoice import ClientAdmin, ExpenseAdmin, InvoiceAdmin, InvoiceItemAdmin
from .journal import JournalEntryAdmin, JournalLineAdmin
from .membership import CompanyAdmin, EntityMembershipAdmin, UserAdmin
from .mixins import TenantAdminMixin
from .recurring import RecurringProfileAdmin
