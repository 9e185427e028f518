"""QuoteGroup model - top-level sections of a quote."""
from sqlalchemy import Column, String, Integer, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from quotedesk.database import Base, IdType


class QuoteGroup(Base):
    """Quote group. ``include_in_fee`` decides whether the agency fee applies."""

    __tablename__ = 'quote_group'

    id = Column(IdType, primary_key=True, autoincrement=True)
    node_id = Column(String(32), nullable=False)  # Stable id of the in-memory node
    quote_id = Column(IdType, ForeignKey('quote.id'), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)
    include_in_fee = Column(Boolean, nullable=False, default=True)

    # Relationships
    quote = relationship('Quote', back_populates='groups')
    items = relationship(
        'QuoteItem', back_populates='group', cascade='all, delete-orphan',
        order_by='QuoteItem.sort_order'
    )

    def __repr__(self):
        return f"<QuoteGroup(id={self.id}, quote_id={self.quote_id}, name='{self.name}')>"
