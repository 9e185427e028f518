"""MasterItem model - catalog entries that quote lines are snapshotted from."""
from sqlalchemy import Column, String, Text, Boolean, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from quotedesk.database import Base, IdType


class MasterItem(Base):
    """
    Master item (catalog).

    Quote lines copy name, unit, prices and supplier name from here when they
    are created and never read this table again.
    """

    __tablename__ = 'master_item'

    id = Column(IdType, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    unit = Column(String(20), nullable=True)
    unit_price = Column(Numeric(14, 2), nullable=False, default=0)
    cost_price = Column(Numeric(14, 2), nullable=True)  # NULL = unknown, snapshot estimates it
    is_service = Column(Boolean, nullable=False, default=False)
    active = Column(Boolean, nullable=False, default=True)
    supplier_id = Column(IdType, ForeignKey('supplier.id'), nullable=True)  # Default supplier
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    supplier = relationship('Supplier', foreign_keys=[supplier_id])

    def __repr__(self):
        return f"<MasterItem(id={self.id}, name='{self.name}', unit_price={self.unit_price})>"
