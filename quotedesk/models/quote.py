"""Quote model for project quotes."""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Date, Text, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from quotedesk.database import Base, IdType
from quotedesk.quoting.status import QuoteStatus


class Quote(Base):
    """
    Quote (aggregate root of the group -> item -> detail structure).

    ``version`` is the optimistic concurrency counter: every save compares the
    version the editor started from and increments it. total_amount,
    total_cost and total_profit are the last calculation, stored for listing
    and filtering only.
    """

    __tablename__ = 'quote'

    id = Column(IdType, primary_key=True, autoincrement=True)
    quote_number = Column(String(64), nullable=False, unique=True)
    project_title = Column(String(255), nullable=False)
    customer_id = Column(IdType, ForeignKey('customer.id'), nullable=True)
    customer_name_snapshot = Column(String(200), nullable=False, default='')
    issue_date = Column(Date, nullable=False)
    valid_until = Column(Date, nullable=True)
    status = Column(String(20), nullable=False, default=QuoteStatus.DRAFT.value)
    vat_type = Column(String(12), nullable=False, default='exclusive')
    discount_amount = Column(Numeric(14, 2), nullable=False, default=0)
    agency_fee_rate = Column(Numeric(6, 4), nullable=False, default=0)
    version = Column(Integer, nullable=False, default=1)
    notes = Column(Text, nullable=True)
    total_amount = Column(Numeric(14, 2), nullable=False, default=0)
    total_cost = Column(Numeric(14, 2), nullable=False, default=0)
    total_profit = Column(Numeric(14, 2), nullable=False, default=0)
    created_by = Column(IdType, ForeignKey('app_user.id'), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    approved_by = Column(IdType, ForeignKey('app_user.id'), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    rejected_by = Column(IdType, ForeignKey('app_user.id'), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    customer = relationship('Customer')
    groups = relationship(
        'QuoteGroup', back_populates='quote', cascade='all, delete-orphan',
        order_by='QuoteGroup.sort_order'
    )
    project = relationship('Project', back_populates='quote', uselist=False)

    def __repr__(self):
        return f"<Quote(id={self.id}, number='{self.quote_number}', status='{self.status}', total={self.total_amount})>"
