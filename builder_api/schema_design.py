"""
Database schema design attached to a project.

A project's ``schema`` is a plain document with two lists:

    tables         [{name, fields: [{name, type, isRequired, isUnique, isId,
                     defaultValue?, relations?}]}]
    relationships  [{source: {table, field}, target: {table, field}, type}]

The graph core treats it as opaque; this module owns its shape. Every
operation returns a new schema document and leaves its input untouched.
"""

import copy
import json
from typing import Any, Dict, List, Optional

from app_builder_core.exceptions import BuilderError, NotFoundError


RELATION_TYPES = ('oneToOne', 'oneToMany', 'manyToOne', 'manyToMany')

_FIELD_FLAGS = ('isRequired', 'isUnique', 'isId')


class InvalidSchemaError(BuilderError):
    """Raised when a table or relationship has the wrong shape."""

    kind = 'invalid_schema'

    def __init__(self, message: str, subject: Optional[str] = None):
        super().__init__(message, {'id': subject})
        self.subject = subject


def _name(value: Any, what: str, subject: Optional[str] = None) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidSchemaError(f"{what} must be a non-empty string", subject)
    return value


def check_field(raw: Any, table_name: str) -> Dict[str, Any]:
    """Normalised copy of one field definition."""
    if not isinstance(raw, dict):
        raise InvalidSchemaError(f"Fields of table {table_name} must be objects", table_name)
    field_name = _name(raw.get('name'), 'Field name', table_name)
    subject = f"{table_name}.{field_name}"

    field = {
        'name': field_name,
        'type': _name(raw.get('type'), f"Type of field {subject}", subject),
    }
    for flag in _FIELD_FLAGS:
        value = raw.get(flag, False)
        if not isinstance(value, bool):
            raise InvalidSchemaError(f"{flag} of field {subject} must be a boolean", subject)
        field[flag] = value
    if raw.get('defaultValue') is not None:
        field['defaultValue'] = copy.deepcopy(raw['defaultValue'])

    relations = raw.get('relations')
    if relations is not None:
        if not isinstance(relations, dict):
            raise InvalidSchemaError(f"relations of field {subject} must be an object", subject)
        relation_type = relations.get('relationType')
        if relation_type is not None and relation_type not in RELATION_TYPES:
            raise InvalidSchemaError(f"Unknown relation type {relation_type!r}", subject)
        field['relations'] = copy.deepcopy(relations)
    return field


def check_table(raw: Any) -> Dict[str, Any]:
    """Normalised copy of one table; a missing field list means no fields."""
    if not isinstance(raw, dict):
        raise InvalidSchemaError("Table must be an object")
    table_name = _name(raw.get('name'), 'Table name')

    fields = raw.get('fields')
    if fields is None:
        fields = []
    if not isinstance(fields, list):
        raise InvalidSchemaError(f"Fields of table {table_name} must be a list", table_name)

    checked = [check_field(f, table_name) for f in fields]
    names = [f['name'] for f in checked]
    for field_name in names:
        if names.count(field_name) > 1:
            raise InvalidSchemaError(
                f"Table {table_name} defines field {field_name} twice", f"{table_name}.{field_name}"
            )
    return {'name': table_name, 'fields': checked}


def _endpoint(raw: Any, end: str) -> Dict[str, str]:
    if not isinstance(raw, dict):
        raise InvalidSchemaError(f"Relationship {end} must be an object with table and field")
    return {
        'table': _name(raw.get('table'), f"Relationship {end} table"),
        'field': _name(raw.get('field'), f"Relationship {end} field"),
    }


def check_relationship(raw: Any, table_names: List[str]) -> Dict[str, Any]:
    """Normalised copy of a relationship whose tables exist in ``table_names``."""
    if not isinstance(raw, dict):
        raise InvalidSchemaError("Relationship must be an object")
    relationship = {
        'source': _endpoint(raw.get('source'), 'source'),
        'target': _endpoint(raw.get('target'), 'target'),
        'type': raw.get('type'),
    }
    if relationship['type'] not in RELATION_TYPES:
        raise InvalidSchemaError(f"Unknown relationship type {relationship['type']!r}")
    for end in ('source', 'target'):
        table_name = relationship[end]['table']
        if table_name not in table_names:
            raise InvalidSchemaError(f"Relationship {end} table {table_name} does not exist", table_name)
    return relationship


def check_schema(tables: Any, relationships: Any) -> Dict[str, Any]:
    """Validate a whole schema document."""
    if tables is None:
        tables = []
    if relationships is None:
        relationships = []
    if not isinstance(tables, list) or not isinstance(relationships, list):
        raise InvalidSchemaError("tables and relationships must be lists")

    checked_tables = [check_table(t) for t in tables]
    names = [t['name'] for t in checked_tables]
    for table_name in names:
        if names.count(table_name) > 1:
            raise InvalidSchemaError(f"Table {table_name} is defined twice", table_name)
    return {
        'tables': checked_tables,
        'relationships': [check_relationship(r, names) for r in relationships],
    }


def _table_names(schema: Dict[str, Any]) -> List[str]:
    return [t['name'] for t in schema.get('tables') or []]


def add_table(schema: Dict[str, Any], raw_table: Any) -> Dict[str, Any]:
    table = check_table(raw_table)
    if table['name'] in _table_names(schema):
        raise InvalidSchemaError(f"Table {table['name']} already exists", table['name'])
    result = copy.deepcopy(schema)
    result.setdefault('tables', []).append(table)
    return result


def update_table(schema: Dict[str, Any], table_name: str, raw_table: Any) -> Dict[str, Any]:
    """Replace a table; renaming it also renames it in every relationship."""
    names = _table_names(schema)
    if table_name not in names:
        raise NotFoundError('table', table_name)
    table = check_table(raw_table)
    if table['name'] != table_name and table['name'] in names:
        raise InvalidSchemaError(f"Table {table['name']} already exists", table['name'])

    result = copy.deepcopy(schema)
    result['tables'] = [table if t['name'] == table_name else t for t in result['tables']]
    for relationship in result.get('relationships') or []:
        for end in ('source', 'target'):
            if relationship[end]['table'] == table_name:
                relationship[end]['table'] = table['name']
    return result


def delete_table(schema: Dict[str, Any], table_name: str) -> Dict[str, Any]:
    """Remove a table and every relationship touching it."""
    if table_name not in _table_names(schema):
        raise NotFoundError('table', table_name)
    result = copy.deepcopy(schema)
    result['tables'] = [t for t in result['tables'] if t['name'] != table_name]
    result['relationships'] = [
        r for r in result.get('relationships') or []
        if r['source']['table'] != table_name and r['target']['table'] != table_name
    ]
    return result


def add_relationship(schema: Dict[str, Any], raw_relationship: Any) -> Dict[str, Any]:
    relationship = check_relationship(raw_relationship, _table_names(schema))
    result = copy.deepcopy(schema)
    result.setdefault('relationships', []).append(relationship)
    return result


def delete_relationship(schema: Dict[str, Any], source: Any, target: Any) -> Dict[str, Any]:
    """Remove every relationship between the given source and target fields."""
    source, target = _endpoint(source, 'source'), _endpoint(target, 'target')
    relationships = schema.get('relationships') or []
    kept = [r for r in relationships if not (r['source'] == source and r['target'] == target)]
    if len(kept) == len(relationships):
        raise NotFoundError(
            'relationship', f"{source['table']}.{source['field']}->{target['table']}.{target['field']}"
        )
    result = copy.deepcopy(schema)
    result['relationships'] = kept
    return result


def _default_literal(value: Any) -> str:
    if isinstance(value, str):
        return f'"{value}"'
    return json.dumps(value)


def to_prisma(schema: Dict[str, Any]) -> str:
    """Render the schema as Prisma model definitions."""
    blocks = {}
    for table in schema.get('tables') or []:
        lines = []
        for field in table['fields']:
            line = f"  {field['name']} {field['type']}"
            if not field.get('isRequired'):
                line += '?'
            if field.get('isId'):
                line += ' @id'
            if field.get('isUnique'):
                line += ' @unique'
            if field.get('defaultValue') is not None:
                line += f" @default({_default_literal(field['defaultValue'])})"
            lines.append(line)
        blocks[table['name']] = lines

    for relationship in schema.get('relationships') or []:
        source, target = relationship['source'], relationship['target']
        if source['table'] not in blocks:
            continue
        target_type = target['table'] + ('[]' if relationship['type'] == 'oneToMany' else '')
        blocks[source['table']].insert(0, (
            f"  {target['table']} {target_type} "
            f"@relation(fields: [{source['field']}], references: [{target['field']}])"
        ))

    return ''.join(
        f"model {name} {{\n" + ''.join(line + '\n' for line in lines) + "}\n\n"
        for name, lines in blocks.items()
    )
