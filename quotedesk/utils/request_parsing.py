"""Helpers for reading JSON request bodies and query arguments."""
from datetime import date
from typing import Optional

from flask import request

from quotedesk.exceptions import ValidationError


def get_payload() -> dict:
    """JSON body of the current request, or form data for plain posts."""
    data = request.get_json(silent=True)
    if data is None:
        return request.form.to_dict()
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def parse_date(value, field: str) -> Optional[date]:
    if value in (None, ''):
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(f'{field} must be a date (YYYY-MM-DD)', field=field)


def parse_int(value, field: str, required: bool = False) -> Optional[int]:
    if value in (None, ''):
        if required:
            raise ValidationError(f'{field} is required', field=field)
        return None
    if isinstance(value, bool):
        raise ValidationError(f'{field} must be an integer', field=field)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be an integer', field=field)


def parse_bool(value, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


def require_version(data: dict) -> int:
    """Version the client started editing from (optimistic concurrency)."""
    version = data.get('version', request.args.get('version'))
    return parse_int(version, 'version', required=True)


def parse_text(value, field: str) -> str:
    """String field from a JSON body; missing values become ''."""
    if value is None:
        return ''
    if not isinstance(value, str):
        raise ValidationError(f'{field} must be a string', field=field)
    return value
