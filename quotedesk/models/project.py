"""Project model - downstream record created from an approved quote."""
from sqlalchemy import Column, String, Numeric, Date, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from quotedesk.database import Base, IdType
import enum


class ProjectStatus(enum.Enum):
    """Project status enum."""
    ACTIVE = 'active'
    COMPLETED = 'completed'
    ON_HOLD = 'on_hold'
    CANCELED = 'canceled'


class Project(Base):
    """Project converted from a quote. One project per quote."""

    __tablename__ = 'project'

    id = Column(IdType, primary_key=True, autoincrement=True)
    quote_id = Column(IdType, ForeignKey('quote.id'), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    customer_name = Column(String(200), nullable=False, default='')
    total_revenue = Column(Numeric(14, 2), nullable=False, default=0)
    total_cost = Column(Numeric(14, 2), nullable=False, default=0)
    status = Column(String(20), nullable=False, default=ProjectStatus.ACTIVE.value)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    created_by = Column(IdType, ForeignKey('app_user.id'), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    quote = relationship('Quote', back_populates='project')
    transactions = relationship(
        'ProjectTransaction',
        back_populates='project',
        cascade='all, delete-orphan',
        order_by='ProjectTransaction.id'
    )

    def __repr__(self):
        return f"<Project(id={self.id}, quote_id={self.quote_id}, name='{self.name}')>"
