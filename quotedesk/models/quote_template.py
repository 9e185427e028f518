"""QuoteTemplate model - reusable group/item/detail structures."""
from sqlalchemy import Column, String, Text, Boolean, DateTime, ForeignKey, JSON
from sqlalchemy.sql import func
from quotedesk.database import Base, IdType


class QuoteTemplate(Base):
    """
    Quote template.

    template_data has the same shape as a quote structure:
    {"groups": [{"name", "include_in_fee", "items": [{"name", "details": [...]}]}]}
    """

    __tablename__ = 'quote_template'

    id = Column(IdType, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    category = Column(String(100), nullable=False, default='general')
    description = Column(Text, nullable=True)
    template_data = Column(JSON, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(IdType, ForeignKey('app_user.id'), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<QuoteTemplate(id={self.id}, name='{self.name}', category='{self.category}')>"
