"""
Component library: reusable component definitions kept outside any canvas.

Each entry is one document in its own document store, keyed by a ``lib_`` id:

    {id, name, type, description, configuration, status, version,
     projectId, createdBy}

Entries are owned by the caller that created them, like projects.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from app_builder_core.exceptions import BuilderError, NotFoundError

from .project_db import DocumentStore, StoredDocument

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ('name', 'type', 'description', 'projectId')
UPDATABLE_FIELDS = ('name', 'type', 'description', 'configuration', 'status', 'version')

DEFAULT_STATUS = 'active'
DEFAULT_VERSION = '1.0.0'


class InvalidLibraryEntryError(BuilderError):
    """Raised when a library entry body is missing fields or has bad values."""

    kind = 'invalid_library_entry'

    def __init__(self, message: str, field_name: str):
        super().__init__(message, {'field': field_name})
        self.field_name = field_name


def new_library_id() -> str:
    return f"lib_{uuid.uuid4().hex[:12]}"


def _check_value(key: str, value: Any):
    if key == 'configuration':
        if not isinstance(value, dict):
            raise InvalidLibraryEntryError("configuration must be an object", key)
    elif not isinstance(value, str) or not value.strip():
        raise InvalidLibraryEntryError(f"{key} must be a non-empty string", key)


class ComponentLibrary:
    """CRUD over library entries held in a DocumentStore."""

    def __init__(self, store: DocumentStore):
        self.store = store

    @staticmethod
    def view(record: StoredDocument) -> Dict[str, Any]:
        """Entry document with its timestamps."""
        entry = dict(record.document)
        entry['createdAt'] = record.created_at
        entry['updatedAt'] = record.updated_at
        return entry

    def create(self, body: Dict[str, Any], owner: str) -> StoredDocument:
        missing = [key for key in REQUIRED_FIELDS if not body.get(key)]
        if missing:
            raise InvalidLibraryEntryError(f"Missing required fields: {', '.join(missing)}", missing[0])

        entry = {
            'id': new_library_id(),
            'name': body['name'],
            'type': body['type'],
            'description': body['description'],
            'configuration': body.get('configuration') or {},
            'status': body.get('status') or DEFAULT_STATUS,
            'version': body.get('version') or DEFAULT_VERSION,
            'projectId': body['projectId'],
            'createdBy': owner,
        }
        for key in UPDATABLE_FIELDS + ('projectId',):
            _check_value(key, entry[key])

        record = self.store.save(entry['id'], entry, owner)
        logger.info(f"Created library component {entry['id']} ({entry['type']})")
        return record

    def get(self, entry_id: str) -> StoredDocument:
        try:
            return self.store.load(entry_id)
        except NotFoundError:
            raise NotFoundError('library component', entry_id) from None

    def list(self, owner: str, project_id: Optional[str] = None) -> List[StoredDocument]:
        """Entries of ``owner``, newest first, optionally for one project."""
        records = self.store.list_documents(owner=owner)
        if project_id:
            records = [r for r in records if r.document.get('projectId') == project_id]
        return records

    def update(self, entry_id: str, body: Dict[str, Any]) -> StoredDocument:
        """Replace the updatable fields present in ``body``; empty values are ignored."""
        record = self.get(entry_id)
        entry = dict(record.document)
        for key in UPDATABLE_FIELDS:
            value = body.get(key)
            if value:
                _check_value(key, value)
                entry[key] = value
        return self.store.save(entry_id, entry)

    def delete(self, entry_id: str) -> bool:
        return self.store.delete(entry_id)
