"""Supplier model."""
from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.sql import func
from quotedesk.database import Base, IdType


class Supplier(Base):
    """Supplier (master supplier record)."""

    __tablename__ = 'supplier'

    id = Column(IdType, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    contact_name = Column(String(200), nullable=True)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def __repr__(self):
        return f"<Supplier(id={self.id}, name='{self.name}')>"
