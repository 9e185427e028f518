"""Template service - reusable quote structures."""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from quotedesk.exceptions import NotFoundError, ValidationError
from quotedesk.models import QuoteTemplate
from quotedesk.quoting.assembly import QuoteAssembler, build_groups, export_groups
from quotedesk.quoting.structure import QuoteTree
from quotedesk.services.repository import SqlRepository

logger = logging.getLogger(__name__)


def normalize_template_data(template_data: Dict[str, Any]) -> Dict[str, List[dict]]:
    """
    Validate template data and return it in canonical form.

    Raises:
        ValidationError: if the data is not a valid group/item/detail structure.
    """
    return export_groups(QuoteTree(groups=build_groups(template_data)))


def list_templates(session: Session, category: Optional[str] = None,
                   include_inactive: bool = False) -> List[QuoteTemplate]:
    query = session.query(QuoteTemplate)
    if not include_inactive:
        query = query.filter(QuoteTemplate.is_active == True)
    if category:
        query = query.filter(QuoteTemplate.category == category)
    return query.order_by(QuoteTemplate.category, QuoteTemplate.name).all()


def get_template_data(session: Session, template_id: int) -> Dict[str, List[dict]]:
    """Template structure of an active template."""
    template = SqlRepository(session).get_template(template_id)
    if not template or not template.is_active:
        raise NotFoundError(f'Template {template_id} not found.')
    return template.template_data


def _text(value, field: str) -> Optional[str]:
    if value is not None and not isinstance(value, str):
        raise ValidationError(f'Template {field} must be a string', field=field)
    return value


def create_template(session: Session, name: str, template_data: Dict[str, Any],
                    category: str = 'general', description: Optional[str] = None,
                    created_by: Optional[int] = None) -> QuoteTemplate:
    name = _text(name, 'name')
    category = _text(category, 'category')
    description = _text(description, 'description')
    if not name or not name.strip():
        raise ValidationError('Template name is required', field='name')

    data = normalize_template_data(template_data)

    try:
        template = QuoteTemplate(
            name=name.strip(),
            category=(category or 'general').strip(),
            description=description,
            template_data=data,
            created_by=created_by,
        )
        session.add(template)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"Template '{template.name}' created with {len(data['groups'])} group(s)")
    return template


def save_quote_as_template(session: Session, quote_id: int, name: str,
                           category: str = 'general', description: Optional[str] = None,
                           created_by: Optional[int] = None) -> QuoteTemplate:
    """Store the structure of an existing quote as a new template."""
    tree = SqlRepository(session).load_quote(quote_id)
    if not tree.groups:
        raise ValidationError('Quote has no groups to save as a template', field='groups')
    return create_template(
        session, name, QuoteAssembler(tree).to_template_data(),
        category=category, description=description, created_by=created_by,
    )


def deactivate_template(session: Session, template_id: int) -> QuoteTemplate:
    template = SqlRepository(session).get_template(template_id)
    if not template:
        raise NotFoundError(f'Template {template_id} not found.')

    template.is_active = False
    session.commit()
    logger.info(f"Template {template_id} deactivated")
    return template
