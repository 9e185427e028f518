"""Project transaction model - income and expense entries of a project."""
from sqlalchemy import Column, String, Numeric, Date, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from quotedesk.database import Base, IdType
import enum


class TransactionType(enum.Enum):
    """Transaction type enum."""
    INCOME = 'income'
    EXPENSE = 'expense'


class TransactionStatus(enum.Enum):
    """Transaction status enum."""
    PENDING = 'pending'
    PROCESSING = 'processing'
    COMPLETED = 'completed'
    ISSUE = 'issue'


class TaxInvoiceStatus(enum.Enum):
    """Tax invoice status enum."""
    NOT_ISSUED = 'not_issued'
    ISSUED = 'issued'
    RECEIVED = 'received'


class ProjectTransaction(Base):
    """
    Money expected from a customer (income) or owed to a partner (expense).

    Completed transactions are final and cannot be deleted.
    """

    __tablename__ = 'project_transaction'

    id = Column(IdType, primary_key=True, autoincrement=True)
    project_id = Column(IdType, ForeignKey('project.id', ondelete='CASCADE'), nullable=False, index=True)
    type = Column(String(10), nullable=False)
    partner_name = Column(String(200), nullable=False)
    item_name = Column(String(255), nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    due_date = Column(Date, nullable=True, index=True)
    status = Column(String(20), nullable=False, default=TransactionStatus.PENDING.value)
    tax_invoice_status = Column(String(20), nullable=False, default=TaxInvoiceStatus.NOT_ISSUED.value)
    notes = Column(Text, nullable=True)
    created_by = Column(IdType, ForeignKey('app_user.id'), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    project = relationship('Project', back_populates='transactions')

    def __repr__(self):
        return f"<ProjectTransaction(id={self.id}, type='{self.type}', amount={self.amount}, status='{self.status}')>"
