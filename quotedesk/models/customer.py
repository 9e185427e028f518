"""Customer model."""
from sqlalchemy import Column, String, Text, DateTime, Boolean
from sqlalchemy.sql import func
from quotedesk.database import Base, IdType


class Customer(Base):
    """Customer (client the quotes are addressed to)."""

    __tablename__ = 'customer'

    id = Column(IdType, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    business_number = Column(String(50), nullable=True)
    contact_name = Column(String(200), nullable=True)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    address = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Customer(id={self.id}, name='{self.name}')>"
