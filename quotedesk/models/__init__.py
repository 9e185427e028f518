"""Models package - exports all SQLAlchemy models."""
# Accounts
from quotedesk.models.app_user import AppUser, UserRole

# Catalog
from quotedesk.models.supplier import Supplier
from quotedesk.models.customer import Customer
from quotedesk.models.master_item import MasterItem

# Quotes
from quotedesk.models.quote import Quote, QuoteStatus
from quotedesk.models.quote_group import QuoteGroup
from quotedesk.models.quote_item import QuoteItem
from quotedesk.models.quote_detail import QuoteDetail
from quotedesk.models.quote_template import QuoteTemplate

# Downstream
from quotedesk.models.project import Project, ProjectStatus
from quotedesk.models.transaction import ProjectTransaction, TransactionType, TransactionStatus, TaxInvoiceStatus
from quotedesk.models.notification import Notification

__all__ = [
    'AppUser', 'UserRole',
    'Supplier', 'Customer', 'MasterItem',
    'Quote', 'QuoteStatus', 'QuoteGroup', 'QuoteItem', 'QuoteDetail', 'QuoteTemplate',
    'Project', 'ProjectStatus',
    'ProjectTransaction', 'TransactionType', 'TransactionStatus', 'TaxInvoiceStatus',
    'Notification',
]
