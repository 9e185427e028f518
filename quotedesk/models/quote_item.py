"""QuoteItem model - named groupings of detail lines inside a group."""
from sqlalchemy import Column, String, Integer, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from quotedesk.database import Base, IdType


class QuoteItem(Base):
    """Quote item."""

    __tablename__ = 'quote_item'

    id = Column(IdType, primary_key=True, autoincrement=True)
    node_id = Column(String(32), nullable=False)
    group_id = Column(IdType, ForeignKey('quote_group.id'), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)
    include_in_fee = Column(Boolean, nullable=False, default=True)

    # Relationships
    group = relationship('QuoteGroup', back_populates='items')
    details = relationship(
        'QuoteDetail', back_populates='item', cascade='all, delete-orphan',
        order_by='QuoteDetail.sort_order'
    )

    def __repr__(self):
        return f"<QuoteItem(id={self.id}, group_id={self.group_id}, name='{self.name}')>"
