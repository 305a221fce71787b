from .account import Account, AccountType
from .auditlog import AuditLog
from .currency import Currency
from .customer import Customer
from .dimension import Branch, CostCenter, Project
from .document import EntryStatus
from .entitymembership import Company, EntityMembership
from .finance import LetterOfCredit, Loan
from .invoice import Invoice, InvoiceLine
from .journal import JournalEntry, JournalLine
from .notification import Notification
from .sequence import DocumentSequence
from .vendor import Vendor
