"""
Timeline node meta schemas

Each node type has a strict set of meta fields. ``validate_meta`` checks a
meta dictionary against its type's schema and returns a cleaned copy;
``get_meta_schema`` renders the same schema as JSON for API clients.
"""
import re
from datetime import datetime
from typing import Dict, List, Optional
from urllib.parse import urlparse

from django.core.exceptions import ValidationError

DATE_FORMAT = "%Y-%m"
MONTH_PATTERN = re.compile(r"^\d{4}-\d{2}$")

EMPLOYMENT_TYPES = ['full-time', 'part-time', 'contract', 'internship', 'freelance']
PROJECT_TYPES = ['personal', 'professional', 'academic', 'freelance', 'open-source']
PROJECT_STATUSES = ['planning', 'active', 'completed', 'on-hold', 'cancelled']
LINK_TYPES = ['github', 'demo', 'documentation', 'website', 'other']
EVENT_TYPES = ['conference', 'certification', 'award', 'publication', 'speaking', 'training', 'other']
ACTION_CATEGORIES = ['skill-development', 'networking', 'application', 'interview', 'research', 'other']
ACTION_IMPACTS = ['high', 'medium', 'low']
ACTION_STATUSES = ['planned', 'in-progress', 'completed', 'cancelled']

COMMON_FIELDS = {
    'startDate': {'type': 'date'},
    'endDate': {'type': 'date'},
}

META_SCHEMAS: Dict[str, Dict[str, Dict]] = {
    'job': {
        'orgId': {'type': 'positive_int', 'required': True},
        'role': {'type': 'string', 'required': True},
        'location': {'type': 'string'},
        'description': {'type': 'string'},
        'responsibilities': {'type': 'string_list'},
        'achievements': {'type': 'string_list'},
        'skills': {'type': 'string_list'},
        'employmentType': {'type': 'enum', 'choices': EMPLOYMENT_TYPES},
        'remote': {'type': 'bool'},
        'coordinates': {'type': 'object'},
    },
    'education': {
        'orgId': {'type': 'positive_int', 'required': True},
        'degree': {'type': 'string', 'required': True},
        'field': {'type': 'string'},
        'location': {'type': 'string'},
        'description': {'type': 'string'},
        'gpa': {'type': 'number', 'min': 0, 'max': 4},
        'honors': {'type': 'string_list'},
        'coursework': {'type': 'string_list'},
        'activities': {'type': 'string_list'},
        'coordinates': {'type': 'object'},
    },
    'project': {
        'title': {'type': 'string', 'required': True},
        'description': {'type': 'string'},
        'technologies': {'type': 'string_list'},
        'projectType': {'type': 'enum', 'choices': PROJECT_TYPES},
        'status': {'type': 'enum', 'choices': PROJECT_STATUSES},
        'teamSize': {'type': 'positive_int'},
        'role': {'type': 'string'},
        'outcomes': {'type': 'string_list'},
        'links': {'type': 'links'},
    },
    'event': {
        'title': {'type': 'string', 'required': True},
        'description': {'type': 'string'},
        'eventType': {'type': 'enum', 'choices': EVENT_TYPES},
        'location': {'type': 'string'},
        'organizer': {'type': 'string'},
        'outcome': {'type': 'string'},
        'certificate': {'type': 'certificate'},
    },
    'action': {
        'title': {'type': 'string', 'required': True},
        'description': {'type': 'string'},
        'category': {'type': 'enum', 'choices': ACTION_CATEGORIES},
        'impact': {'type': 'enum', 'choices': ACTION_IMPACTS},
        'status': {'type': 'enum', 'choices': ACTION_STATUSES},
        'outcome': {'type': 'string'},
        'metrics': {'type': 'object'},
    },
    'careerTransition': {
        'title': {'type': 'string', 'required': True},
        'description': {'type': 'string'},
        'fromRole': {'type': 'string'},
        'toRole': {'type': 'string'},
        'reason': {'type': 'string'},
        'challenges': {'type': 'string_list'},
        'learnings': {'type': 'string_list'},
    },
}

CERTIFICATE_KEYS = ('id', 'issuer', 'url')


def is_valid_url(value) -> bool:
    if not isinstance(value, str):
        return False
    parsed = urlparse(value.strip())
    return parsed.scheme in ('http', 'https') and bool(parsed.netloc)


def parse_month(value: str) -> Optional[datetime]:
    if not isinstance(value, str) or not MONTH_PATTERN.match(value):
        return None
    try:
        return datetime.strptime(value, DATE_FORMAT)
    except (TypeError, ValueError):
        return None


def _schema_for(node_type: str) -> Dict[str, Dict]:
    if node_type not in META_SCHEMAS:
        raise ValidationError(f"type must be one of: {', '.join(META_SCHEMAS)}")
    return {**META_SCHEMAS[node_type], **COMMON_FIELDS}


def _check_field(name: str, rule: Dict, value, errors: List[str]):
    """Validate one value and return its cleaned form."""
    kind = rule['type']

    if kind == 'string':
        if not isinstance(value, str):
            errors.append(f"{name} must be a string")
            return value
        value = value.strip()
        if rule.get('required') and not value:
            errors.append(f"{name} is required")
        return value

    if kind == 'date':
        if parse_month(value) is None:
            errors.append(f"{name} must be in YYYY-MM format")
        return value

    if kind == 'string_list':
        if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
            errors.append(f"{name} must be a list of strings")
            return value
        return [item.strip() for item in value if item.strip()]

    if kind == 'bool':
        if not isinstance(value, bool):
            errors.append(f"{name} must be a boolean")
        return value

    if kind == 'positive_int':
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            errors.append(f"{name} must be a positive integer")
        return value

    if kind == 'number':
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            errors.append(f"{name} must be a number")
            return value
        if value < rule.get('min', value) or value > rule.get('max', value):
            errors.append(f"{name} must be between {rule['min']} and {rule['max']}")
        return value

    if kind == 'enum':
        if value not in rule['choices']:
            errors.append(f"{name} must be one of: {', '.join(rule['choices'])}")
        return value

    if kind == 'object':
        if not isinstance(value, dict):
            errors.append(f"{name} must be an object")
        return value

    if kind == 'links':
        if not isinstance(value, list):
            errors.append(f"{name} must be a list")
            return value
        for index, link in enumerate(value):
            if not isinstance(link, dict):
                errors.append(f"{name}[{index}] must be an object")
                continue
            if link.get('type') not in LINK_TYPES:
                errors.append(f"{name}[{index}].type must be one of: {', '.join(LINK_TYPES)}")
            if not is_valid_url(link.get('url')):
                errors.append(f"{name}[{index}].url must be a valid URL")
            unknown = set(link) - {'type', 'url', 'label'}
            if unknown:
                errors.append(f"{name}[{index}] has unknown fields: {', '.join(sorted(unknown))}")
        return value

    if kind == 'certificate':
        if not isinstance(value, dict):
            errors.append(f"{name} must be an object")
            return value
        unknown = set(value) - set(CERTIFICATE_KEYS)
        if unknown:
            errors.append(f"{name} has unknown fields: {', '.join(sorted(unknown))}")
        if value.get('url') and not is_valid_url(value['url']):
            errors.append(f"{name}.url must be a valid URL")
        return value

    raise ValueError(f"Unknown meta field kind: {kind}")


def validate_meta(node_type: str, meta: Optional[Dict]) -> Dict:
    """
    Validate node meta against the schema for ``node_type``.

    ``None`` values are treated as absent and dropped from the result.

    Raises:
        ValidationError: listing every problem found
    """
    schema = _schema_for(node_type)
    if meta is None:
        meta = {}
    if not isinstance(meta, dict):
        raise ValidationError("meta must be an object")

    errors: List[str] = []
    cleaned = {}

    unknown = sorted(key for key in meta if key not in schema)
    if unknown:
        errors.append(f"Unknown fields for {node_type} meta: {', '.join(unknown)}")

    for name, rule in schema.items():
        value = meta.get(name)
        if value is None:
            if rule.get('required'):
                errors.append(f"{name} is required")
            continue
        cleaned[name] = _check_field(name, rule, value, errors)

    start = parse_month(cleaned.get('startDate'))
    end = parse_month(cleaned.get('endDate'))
    if start and end and end < start:
        errors.append("endDate cannot be before startDate")

    if errors:
        raise ValidationError(errors)
    return cleaned


def get_meta_schema(node_type: str) -> Dict:
    """
    Describe the meta schema of ``node_type`` as a JSON-schema-like object.
    """
    schema = _schema_for(node_type)
    properties = {}
    for name, rule in schema.items():
        kind = rule['type']
        if kind == 'string_list':
            prop = {'type': 'array', 'items': {'type': 'string'}}
        elif kind == 'links':
            prop = {
                'type': 'array',
                'items': {
                    'type': 'object',
                    'properties': {
                        'type': {'type': 'string', 'enum': LINK_TYPES},
                        'url': {'type': 'string', 'format': 'uri'},
                        'label': {'type': 'string'},
                    },
                    'required': ['type', 'url'],
                },
            }
        elif kind == 'certificate':
            prop = {
                'type': 'object',
                'properties': {key: {'type': 'string'} for key in CERTIFICATE_KEYS},
            }
        elif kind == 'enum':
            prop = {'type': 'string', 'enum': list(rule['choices'])}
        elif kind == 'positive_int':
            prop = {'type': 'integer', 'minimum': 1}
        elif kind == 'number':
            prop = {'type': 'number', 'minimum': rule['min'], 'maximum': rule['max']}
        elif kind == 'bool':
            prop = {'type': 'boolean'}
        elif kind == 'date':
            prop = {'type': 'string', 'pattern': r'^\d{4}-\d{2}$'}
        elif kind == 'object':
            prop = {'type': 'object'}
        else:
            prop = {'type': 'string'}
        properties[name] = prop

    return {
        'type': 'object',
        'properties': properties,
        'required': [name for name, rule in schema.items() if rule.get('required')],
        'additionalProperties': False,
    }
