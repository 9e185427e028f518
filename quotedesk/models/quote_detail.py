"""QuoteDetail model for quote detail lines."""
from sqlalchemy import Column, String, Text, Integer, Boolean, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from quotedesk.database import Base, IdType


class QuoteDetail(Base):
    """
    Quote detail line.

    Stores a snapshot of the master item and supplier at the time the line was
    added, so later catalog edits do not change historical quotes.
    supplier_id and master_item_id are lookup references only (no FK).
    """

    __tablename__ = 'quote_detail'

    id = Column(IdType, primary_key=True, autoincrement=True)
    node_id = Column(String(32), nullable=False)
    item_id = Column(IdType, ForeignKey('quote_item.id'), nullable=False, index=True)
    name = Column(String(200), nullable=False, default='')
    description = Column(Text, nullable=True)
    quantity = Column(Numeric(12, 3), nullable=False, default=1)
    days = Column(Numeric(8, 2), nullable=False, default=1)
    unit = Column(String(20), nullable=False)
    unit_price = Column(Numeric(14, 2), nullable=False, default=0)
    cost_price = Column(Numeric(14, 2), nullable=False, default=0)  # Internal only
    is_service = Column(Boolean, nullable=False, default=False)
    supplier_id = Column(IdType, nullable=True)
    supplier_name_snapshot = Column(String(200), nullable=False, default='')
    master_item_id = Column(IdType, nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)

    # Relationships
    item = relationship('QuoteItem', back_populates='details')

    def __repr__(self):
        return f"<QuoteDetail(id={self.id}, item_id={self.item_id}, name='{self.name}', qty={self.quantity})>"
