"""
Project Database: document storage for builder projects.

Stores each project as one JSON document keyed by its public ``projectId``,
together with the opaque identity of the caller that owns it. Saves replace
the whole document (last write wins); concurrent editing sessions of the same
project are not reconciled.

Schema (one table per collection: projects, and library_components for the
component library; the key column holds the document id):
  <table>: project_id, owner, name, created_at, updated_at, document_json
"""

import json
import logging
import sqlite3
import threading
import time
from abc import ABC, abstractmethod
from contextlib import closing
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from app_builder_core.component_registry import ComponentRegistry
from app_builder_core.exceptions import NotFoundError, UpstreamUnavailableError
from app_builder_core.project import Project
from app_builder_core.serialization import from_document, to_document
from app_builder_core.validator import ValidationPolicy

logger = logging.getLogger(__name__)


@dataclass
class StoredDocument:
    """A persisted project document and its bookkeeping columns."""
    project_id: str
    owner: Optional[str]
    document: Dict[str, Any]
    created_at: float
    updated_at: float

    def summary(self) -> Dict[str, Any]:
        """Metadata only, without the component graph."""
        return {
            'projectId': self.project_id,
            'projectName': self.document.get('projectName', ''),
            'description': self.document.get('description', ''),
            'status': self.document.get('status', ''),
            'componentCount': len(self.document.get('components') or []),
            'createdAt': self.created_at,
            'updatedAt': self.updated_at,
        }


class DocumentStore(ABC):
    """Save/load interface of the persistence collaborator."""

    @abstractmethod
    def save(self, project_id: str, document: Dict[str, Any],
             owner: Optional[str] = None) -> StoredDocument:
        """Insert or replace a project document."""
        pass

    @abstractmethod
    def load(self, project_id: str) -> StoredDocument:
        """Return the stored document or raise NotFoundError."""
        pass

    @abstractmethod
    def delete(self, project_id: str) -> bool:
        pass

    @abstractmethod
    def list_documents(self, owner: Optional[str] = None) -> List[StoredDocument]:
        """All documents, newest first, optionally restricted to one owner."""
        pass

    def exists(self, project_id: str) -> bool:
        try:
            self.load(project_id)
        except NotFoundError:
            return False
        return True


class InMemoryDocumentStore(DocumentStore):
    """Process-local store, used by tests and throwaway sessions."""

    def __init__(self):
        self._documents: Dict[str, StoredDocument] = {}
        self._lock = threading.Lock()

    def save(self, project_id, document, owner=None):
        now = time.time()
        with self._lock:
            existing = self._documents.get(project_id)
            record = StoredDocument(
                project_id=project_id,
                owner=existing.owner if existing and owner is None else owner,
                document=json.loads(json.dumps(document)),
                created_at=existing.created_at if existing else now,
                updated_at=now,
            )
            self._documents[project_id] = record
        return record

    def load(self, project_id):
        with self._lock:
            record = self._documents.get(project_id)
        if record is None:
            raise NotFoundError('project', project_id)
        return StoredDocument(
            record.project_id, record.owner, json.loads(json.dumps(record.document)),
            record.created_at, record.updated_at,
        )

    def delete(self, project_id):
        with self._lock:
            return self._documents.pop(project_id, None) is not None

    def list_documents(self, owner=None):
        with self._lock:
            records = list(self._documents.values())
        if owner is not None:
            records = [r for r in records if r.owner == owner]
        return sorted(records, key=lambda r: r.updated_at, reverse=True)


class SQLiteDocumentStore(DocumentStore):
    """SQLite-backed document store; one connection per operation."""

    def __init__(self, db_path: str, timeout: float = 5.0, table: str = 'projects'):
        if not table.isidentifier():
            raise ValueError(f"Invalid table name: {table!r}")
        self.db_path = db_path
        self.table = table
        self.timeout = timeout
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self):
        try:
            with closing(self._connect()) as conn:
                conn.executescript(f'''
                    CREATE TABLE IF NOT EXISTS {self.table} (
                        project_id    TEXT PRIMARY KEY,
                        owner         TEXT,
                        name          TEXT NOT NULL DEFAULT '',
                        created_at    REAL NOT NULL,
                        updated_at    REAL NOT NULL,
                        document_json TEXT NOT NULL
                    );

                    CREATE INDEX IF NOT EXISTS idx_{self.table}_owner ON {self.table}(owner);
                ''')
                conn.commit()
        except sqlite3.Error as e:
            raise UpstreamUnavailableError('persistence', f"Cannot open project database: {e}") from e

    @staticmethod
    def _record(row: sqlite3.Row) -> StoredDocument:
        return StoredDocument(
            project_id=row['project_id'],
            owner=row['owner'],
            document=json.loads(row['document_json']),
            created_at=row['created_at'],
            updated_at=row['updated_at'],
        )

    def save(self, project_id, document, owner=None):
        now = time.time()
        try:
            with closing(self._connect()) as conn:
                conn.execute(f'''
                    INSERT INTO {self.table} (project_id, owner, name, created_at, updated_at, document_json)
                    VALUES (?, ?, ?, ?, ?, ?)
                    ON CONFLICT(project_id) DO UPDATE
                       SET owner = COALESCE(excluded.owner, {self.table}.owner),
                           name = excluded.name,
                           updated_at = excluded.updated_at,
                           document_json = excluded.document_json
                ''', (project_id, owner, document.get('projectName') or document.get('name', ''), now, now, json.dumps(document)))
                conn.commit()
                row = conn.execute(
                    f'SELECT * FROM {self.table} WHERE project_id = ?', (project_id,)
                ).fetchone()
        except sqlite3.Error as e:
            logger.error(f"Failed to save project {project_id}: {e}")
            raise UpstreamUnavailableError('persistence', f"Failed to save project {project_id}") from e
        logger.info(f"Saved {self.table} document {project_id}")
        return self._record(row)

    def load(self, project_id):
        try:
            with closing(self._connect()) as conn:
                row = conn.execute(
                    f'SELECT * FROM {self.table} WHERE project_id = ?', (project_id,)
                ).fetchone()
        except sqlite3.Error as e:
            logger.error(f"Failed to load project {project_id}: {e}")
            raise UpstreamUnavailableError('persistence', f"Failed to load project {project_id}") from e
        if row is None:
            raise NotFoundError('project', project_id)
        return self._record(row)

    def delete(self, project_id):
        try:
            with closing(self._connect()) as conn:
                cursor = conn.execute(f'DELETE FROM {self.table} WHERE project_id = ?', (project_id,))
                conn.commit()
                return cursor.rowcount > 0
        except sqlite3.Error as e:
            logger.error(f"Failed to delete project {project_id}: {e}")
            raise UpstreamUnavailableError('persistence', f"Failed to delete project {project_id}") from e

    def list_documents(self, owner=None):
        query = f'SELECT * FROM {self.table}'
        params: tuple = ()
        if owner is not None:
            query += ' WHERE owner = ?'
            params = (owner,)
        query += ' ORDER BY updated_at DESC'
        try:
            with closing(self._connect()) as conn:
                rows = conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            logger.error(f"Failed to list {self.table}: {e}")
            raise UpstreamUnavailableError('persistence', f"Failed to list {self.table}") from e
        return [self._record(r) for r in rows]


class ProjectRepository:
    """Pairs a document store with the serialization adapter."""

    def __init__(self, store: DocumentStore, registry: Optional[ComponentRegistry] = None,
                 policy: Optional[ValidationPolicy] = None):
        self.store = store
        self.registry = registry
        self.policy = policy or ValidationPolicy()

    def save_project(self, project: Project, owner: Optional[str] = None) -> StoredDocument:
        return self.store.save(project.project_id, to_document(project), owner)

    def load_project(self, project_id: str) -> Project:
        """Load and rebuild a project; raises CorruptDocumentError if it fails validation."""
        return self.project_from_record(self.store.load(project_id))

    def project_from_record(self, record: StoredDocument) -> Project:
        return from_document(record.document, self.registry, self.policy)
