"""
Flask REST API for the visual application builder.

Every mutating endpoint loads the project document, rebuilds the project
graph, applies one core operation and saves the whole document back.
Callers identify themselves with an opaque ``X-User-Id`` header; projects are
only visible to the identity that created them.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from flask import Blueprint, Flask, current_app, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from app_builder_core.codec import component_to_dict, connection_to_dict
from app_builder_core.component_registry import ComponentRegistry, default_registry
from app_builder_core.exceptions import BuilderError, CorruptDocumentError, NotFoundError
from app_builder_core.models import Position
from app_builder_core.project import Project
from app_builder_core.serialization import from_document, to_document, to_source_text
from app_builder_core.validator import ValidationPolicy

from .ai_client import GenerationClient, new_project_id
from .library import ComponentLibrary
from .project_db import DocumentStore, ProjectRepository, SQLiteDocumentStore, StoredDocument
from .rate_limit import InMemoryRateLimiter, RateLimitConfig
from . import responses, schema_design
from .settings import Settings, configure_logging

logger = logging.getLogger(__name__)

USER_HEADER = 'X-User-Id'


class InvalidRequest(Exception):
    """Request body or parameters are unusable (HTTP 400)."""


class AccessDenied(Exception):
    """Caller is missing (HTTP 401) or does not own the project (HTTP 403)."""

    def __init__(self, message: str, status: int):
        super().__init__(message)
        self.message = message
        self.status = status


class StoredDocumentCorrupt(Exception):
    """A persisted document failed validation on load."""

    def __init__(self, project_id: str, error: CorruptDocumentError):
        super().__init__(error.message)
        self.project_id = project_id
        self.error = error


@dataclass
class BuilderServices:
    """Collaborators shared by all requests of one app."""
    settings: Settings
    repository: ProjectRepository
    registry: ComponentRegistry
    generation_client: GenerationClient
    ai_limiter: InMemoryRateLimiter
    library: ComponentLibrary


api = Blueprint('api', __name__, url_prefix='/api')


# ─────────────────────────────────────────────────────────────────────
# Request helpers
# ─────────────────────────────────────────────────────────────────────

def _services() -> BuilderServices:
    return current_app.extensions['app_builder']


def _caller() -> str:
    caller = request.headers.get(USER_HEADER, '').strip()
    if not caller:
        raise AccessDenied('Authentication required', 401)
    return caller


def _json_body() -> Dict[str, Any]:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise InvalidRequest('Request body must be a JSON object')
    return body


def _number(body: Dict[str, Any], key: str, default: Optional[float] = None) -> float:
    value = body.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidRequest(f"'{key}' must be a number")
    return float(value)


def _load_record(project_id: str) -> StoredDocument:
    caller = _caller()
    record = _services().repository.store.load(project_id)
    if record.owner is not None and record.owner != caller:
        raise AccessDenied('Access to this project is not allowed', 403)
    return record


def _open_project(project_id: str) -> Project:
    record = _load_record(project_id)
    try:
        return _services().repository.project_from_record(record)
    except CorruptDocumentError as e:
        raise StoredDocumentCorrupt(project_id, e) from e


def _save(project: Project) -> Dict[str, Any]:
    record = _services().repository.save_project(project, owner=_caller())
    return record.document


# ─────────────────────────────────────────────────────────────────────
# Health and palette
# ─────────────────────────────────────────────────────────────────────

@api.route('/health', methods=['GET'])
def health():
    return responses.success('Builder API is running', {'status': 'healthy'})


@api.route('/palette', methods=['GET'])
def palette():
    """List registered component types, grouped by category or searched."""
    registry = _services().registry
    query = request.args.get('q', '')
    if query:
        data = [spec.to_dict() for spec in registry.search(query)]
    else:
        data = {
            category: [spec.to_dict() for spec in specs]
            for category, specs in registry.categories().items()
        }
    return responses.success('Palette retrieved successfully', data)


# ─────────────────────────────────────────────────────────────────────
# Projects
# ─────────────────────────────────────────────────────────────────────

@api.route('/projects', methods=['GET'])
def list_projects():
    records = _services().repository.store.list_documents(owner=_caller())
    return responses.success('Projects retrieved successfully', [r.summary() for r in records])


@api.route('/projects', methods=['POST'])
def create_project():
    caller = _caller()
    body = _json_body()
    services = _services()

    project_name = body.get('projectName')
    if not isinstance(project_name, str) or not project_name.strip():
        raise InvalidRequest('projectName is required')

    project_id = body.get('projectId') or new_project_id()
    if services.repository.store.exists(project_id):
        raise InvalidRequest(f"Project {project_id} already exists")

    document = {
        'projectId': project_id,
        'projectName': project_name,
        'description': body.get('description', ''),
        'status': body.get('status') or 'created',
        'createdBy': body.get('createdBy') or {'id': caller},
        'components': body.get('components'),
        'connections': body.get('connections'),
    }
    if body.get('schema') is not None:
        document['schema'] = body['schema']

    project = from_document(document, services.registry, services.repository.policy)
    saved = services.repository.save_project(project, owner=caller)
    logger.info(f"Created project {project_id} for {caller}")
    return responses.success('Project created successfully', saved.document)


@api.route('/projects/<project_id>', methods=['GET'])
def get_project(project_id):
    project = _open_project(project_id)
    return responses.success('Project retrieved successfully', to_document(project))


@api.route('/projects/<project_id>', methods=['PUT'])
def update_project(project_id):
    """Update metadata and optionally replace the whole component graph."""
    body = _json_body()
    services = _services()
    current = to_document(_open_project(project_id))

    for key in ('projectName', 'description', 'status'):
        if body.get(key):
            current[key] = body[key]
    if 'components' in body:
        current['components'] = body['components']
        current['connections'] = body.get('connections')
    elif 'connections' in body:
        current['connections'] = body['connections']
    if 'schema' in body:
        current['schema'] = body['schema']

    project = from_document(current, services.registry, services.repository.policy)
    return responses.success('Project updated successfully', _save(project))


@api.route('/projects/<project_id>', methods=['DELETE'])
def delete_project(project_id):
    _load_record(project_id)
    _services().repository.store.delete(project_id)
    logger.info(f"Deleted project {project_id}")
    return responses.success('Project deleted', {'projectId': project_id})


# ─────────────────────────────────────────────────────────────────────
# Components
# ─────────────────────────────────────────────────────────────────────

@api.route('/projects/<project_id>/components', methods=['GET'])
def list_components(project_id):
    project = _open_project(project_id)
    data = [component_to_dict(c) for c in project.components.list()]
    return responses.success('Components retrieved successfully', data)


@api.route('/projects/<project_id>/components', methods=['POST'])
def add_component(project_id):
    """Place a component, as a palette drop does."""
    body = _json_body()
    component_type = body.get('type')
    if not isinstance(component_type, str) or not component_type:
        raise InvalidRequest('type is required')
    props = body.get('props') or {}
    if not isinstance(props, dict):
        raise InvalidRequest('props must be an object')

    project = _open_project(project_id)
    initial = {'name': project.next_display_name(component_type)}
    initial.update(props)
    component = project.add_component(component_type, initial)
    _save(project)
    return responses.success(f"{component_type} component added", component_to_dict(component))


@api.route('/projects/<project_id>/components/<component_id>', methods=['PATCH'])
def update_component(project_id, component_id):
    body = _json_body()
    props = body.get('props', body)
    if not isinstance(props, dict):
        raise InvalidRequest('props must be an object')

    project = _open_project(project_id)
    component = project.update_component(component_id, props)
    _save(project)
    return responses.success('Component updated', component_to_dict(component))


@api.route('/projects/<project_id>/components/<component_id>/move', methods=['POST'])
def move_component(project_id, component_id):
    """Move by offset (``dx``/``dy``) or to an absolute point (``x``/``y``)."""
    body = _json_body()
    project = _open_project(project_id)
    if 'x' in body or 'y' in body:
        component = project.update_component(component_id, {
            'position': Position(_number(body, 'x'), _number(body, 'y')),
        })
    else:
        component = project.move_component(
            component_id, _number(body, 'dx', 0.0), _number(body, 'dy', 0.0)
        )
    _save(project)
    return responses.success('Component moved', component_to_dict(component))


@api.route('/projects/<project_id>/components/<component_id>/duplicate', methods=['POST'])
def duplicate_component(project_id, component_id):
    project = _open_project(project_id)
    component = project.duplicate_component(component_id)
    _save(project)
    return responses.success('Component duplicated', component_to_dict(component))


@api.route('/projects/<project_id>/components/<component_id>', methods=['DELETE'])
def delete_component(project_id, component_id):
    project = _open_project(project_id)
    dropped = [c.id for c in project.connections.for_component(component_id)]
    removed = project.remove_component(component_id)
    if removed:
        _save(project)
    return responses.success('Component deleted', {
        'removed': removed,
        'removedConnections': dropped if removed else [],
    })


# ─────────────────────────────────────────────────────────────────────
# Connections
# ─────────────────────────────────────────────────────────────────────

@api.route('/projects/<project_id>/connections', methods=['GET'])
def list_connections(project_id):
    project = _open_project(project_id)
    component_id = request.args.get('componentId')
    if component_id:
        connections = project.connections.for_component(component_id)
    else:
        connections = project.connections.list()
    return responses.success('Connections retrieved successfully',
                             [connection_to_dict(c) for c in connections])


@api.route('/projects/<project_id>/connections', methods=['POST'])
def add_connection(project_id):
    body = _json_body()
    from_id, to_id = body.get('from'), body.get('to')
    if not isinstance(from_id, str) or not isinstance(to_id, str):
        raise InvalidRequest("'from' and 'to' component ids are required")
    label = body.get('label')
    if label is not None and not isinstance(label, str):
        raise InvalidRequest('label must be a string')

    project = _open_project(project_id)
    connection = project.connect(from_id, to_id, body.get('type', 'data'), label)
    _save(project)
    return responses.success('Connection added successfully', connection_to_dict(connection))


@api.route('/projects/<project_id>/connections/<connection_id>', methods=['DELETE'])
def delete_connection(project_id, connection_id):
    project = _open_project(project_id)
    removed = project.disconnect(connection_id)
    if removed:
        _save(project)
    return responses.success('Connection removed successfully', {'removed': removed})


# ─────────────────────────────────────────────────────────────────────
# Projections and checks
# ─────────────────────────────────────────────────────────────────────

@api.route('/projects/<project_id>/code', methods=['GET'])
def generate_code(project_id):
    project = _open_project(project_id)
    return responses.success('Code generated successfully', {
        'language': 'jsx',
        'code': to_source_text(project, _services().registry),
    })


@api.route('/projects/<project_id>/validate', methods=['GET'])
def validate_project(project_id):
    project = _open_project(project_id)
    violations = [v.to_dict() for v in project.validate()]
    return responses.success('Project validated', {
        'consistent': not violations,
        'violations': violations,
    })


# ─────────────────────────────────────────────────────────────────────
# Database schema (opaque attachment)
# ─────────────────────────────────────────────────────────────────────

@api.route('/projects/<project_id>/schema', methods=['GET'])
def get_schema(project_id):
    project = _open_project(project_id)
    if project.schema is None:
        return responses.not_found('Schema not found')
    return responses.success('Schema retrieved successfully', project.schema)


@api.route('/projects/<project_id>/schema', methods=['PUT'])
def upsert_schema(project_id):
    body = _json_body()
    schema = schema_design.check_schema(body.get('tables'), body.get('relationships'))

    project = _open_project(project_id)
    project.schema = schema
    _save(project)
    return responses.success('Schema updated successfully', project.schema)


@api.route('/projects/<project_id>/schema', methods=['DELETE'])
def delete_schema(project_id):
    project = _open_project(project_id)
    if project.schema is None:
        return responses.not_found('Schema not found')
    project.schema = None
    _save(project)
    return responses.success('Schema deleted successfully')


def _open_schema(project_id: str):
    project = _open_project(project_id)
    if project.schema is None:
        raise NotFoundError('schema', project_id)
    return project, project.schema


@api.route('/projects/<project_id>/schema/tables', methods=['POST'])
def add_table(project_id):
    body = _json_body()
    project, schema = _open_schema(project_id)
    project.schema = schema_design.add_table(schema, body.get('table'))
    _save(project)
    return responses.success('Table added successfully', project.schema)


@api.route('/projects/<project_id>/schema/tables/<table_name>', methods=['PUT'])
def update_table(project_id, table_name):
    body = _json_body()
    project, schema = _open_schema(project_id)
    project.schema = schema_design.update_table(schema, table_name, body.get('table'))
    _save(project)
    return responses.success('Table updated successfully', project.schema)


@api.route('/projects/<project_id>/schema/tables/<table_name>', methods=['DELETE'])
def delete_table(project_id, table_name):
    project, schema = _open_schema(project_id)
    project.schema = schema_design.delete_table(schema, table_name)
    _save(project)
    return responses.success('Table deleted successfully', project.schema)


@api.route('/projects/<project_id>/schema/relationships', methods=['POST'])
def add_relationship(project_id):
    body = _json_body()
    project, schema = _open_schema(project_id)
    project.schema = schema_design.add_relationship(schema, body)
    _save(project)
    return responses.success('Relationship added successfully', project.schema)


@api.route('/projects/<project_id>/schema/relationships', methods=['DELETE'])
def delete_relationship(project_id):
    body = _json_body()
    project, schema = _open_schema(project_id)
    project.schema = schema_design.delete_relationship(schema, body.get('source'), body.get('target'))
    _save(project)
    return responses.success('Relationship deleted successfully', project.schema)


@api.route('/projects/<project_id>/schema/prisma', methods=['GET'])
def prisma_schema(project_id):
    _, schema = _open_schema(project_id)
    return responses.success('Prisma schema generated successfully',
                             {'schema': schema_design.to_prisma(schema)})


# ─────────────────────────────────────────────────────────────────────
# Component library
# ─────────────────────────────────────────────────────────────────────

def _library_record(entry_id: str) -> StoredDocument:
    caller = _caller()
    record = _services().library.get(entry_id)
    if record.owner is not None and record.owner != caller:
        raise AccessDenied('Access to this component is not allowed', 403)
    return record


@api.route('/library', methods=['GET'])
def list_library():
    library = _services().library
    records = library.list(_caller(), request.args.get('projectId'))
    return responses.success('Components retrieved successfully', [library.view(r) for r in records])


@api.route('/library', methods=['POST'])
def create_library_component():
    caller = _caller()
    body = _json_body()
    library = _services().library
    return responses.success('Component created successfully', library.view(library.create(body, caller)))


@api.route('/library/<entry_id>', methods=['GET'])
def get_library_component(entry_id):
    record = _library_record(entry_id)
    return responses.success('Component retrieved successfully', _services().library.view(record))


@api.route('/library/<entry_id>', methods=['PUT'])
def update_library_component(entry_id):
    body = _json_body()
    _library_record(entry_id)
    library = _services().library
    return responses.success('Component updated successfully', library.view(library.update(entry_id, body)))


@api.route('/library/<entry_id>', methods=['DELETE'])
def delete_library_component(entry_id):
    _library_record(entry_id)
    _services().library.delete(entry_id)
    return responses.success('Component deleted successfully')


# ─────────────────────────────────────────────────────────────────────
# AI generation
# ─────────────────────────────────────────────────────────────────────

@api.route('/ai/generate', methods=['POST'])
def generate_project():
    """Scaffold a new project from a prompt via the generation service."""
    caller = _caller()
    body = _json_body()
    prompt = body.get('prompt')
    if not isinstance(prompt, str) or not prompt.strip():
        raise InvalidRequest('Prompt is required')

    services = _services()
    allowed, info = services.ai_limiter.is_allowed(caller)
    if not allowed:
        return responses.too_many_requests(
            f"Rate limit exceeded, retry in {info['retry_after']} seconds", info['retry_after']
        )

    user_info = body.get('userInfo') or {'id': caller}
    try:
        result = services.generation_client.generate(prompt, user_info)
        project = Project(
            project_id=new_project_id(),
            project_name=result.project_name,
            description=result.description,
            status='generated',
            created_by=user_info,
            registry=services.registry,
            policy=services.repository.policy,
        )
        project.import_components(result.components)
    except CorruptDocumentError as e:
        logger.warning(f"Rejected AI response: {e.message}")
        return responses.failure('Failed to parse AI response', 502, e.to_dict())

    saved = services.repository.save_project(project, owner=caller)
    logger.info(f"Generated project {project.project_id} with {len(project.components)} components")
    return responses.success('Project generated successfully', saved.document)


# ─────────────────────────────────────────────────────────────────────
# Error handling
# ─────────────────────────────────────────────────────────────────────

def _register_error_handlers(app: Flask):

    @app.errorhandler(InvalidRequest)
    def handle_invalid_request(error):
        return responses.bad_request(str(error))

    @app.errorhandler(AccessDenied)
    def handle_access_denied(error):
        return responses.failure(error.message, error.status)

    @app.errorhandler(StoredDocumentCorrupt)
    def handle_corrupt_document(error):
        logger.error(f"Stored project {error.project_id} failed validation: {error.error.message}")
        return responses.builder_error(error.error, from_storage=True)

    @app.errorhandler(BuilderError)
    def handle_builder_error(error):
        if responses.status_for(error) >= 500:
            logger.error(f"{error.kind}: {error.message}")
        return responses.builder_error(error)

    @app.errorhandler(Exception)
    def handle_unexpected(error):
        if isinstance(error, HTTPException):
            return responses.failure(error.description, error.code)
        logger.exception("Unhandled error")
        return responses.failure('Internal server error', 500, str(error))


def create_app(settings: Optional[Settings] = None, store: Optional[DocumentStore] = None,
               generation_client: Optional[GenerationClient] = None,
               registry: Optional[ComponentRegistry] = None,
               library_store: Optional[DocumentStore] = None) -> Flask:
    """Build the Flask application and wire its collaborators."""
    settings = settings or Settings.from_env()
    registry = registry or default_registry()
    policy = ValidationPolicy(allow_self_loops=settings.allow_self_loops)

    app = Flask(__name__)
    CORS(app)

    app.extensions['app_builder'] = BuilderServices(
        settings=settings,
        repository=ProjectRepository(store or SQLiteDocumentStore(settings.db_path), registry, policy),
        registry=registry,
        generation_client=generation_client or GenerationClient(
            settings.ai_url, settings.ai_api_key, settings.ai_timeout
        ),
        ai_limiter=InMemoryRateLimiter(RateLimitConfig(
            requests_per_window=settings.ai_rate_limit,
            window_size=settings.ai_rate_window,
        )),
        library=ComponentLibrary(
            library_store or SQLiteDocumentStore(settings.db_path, table='library_components')
        ),
    )
    app.register_blueprint(api)
    _register_error_handlers(app)
    return app


if __name__ == '__main__':
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    logger.info(f"Starting builder API with database {settings.db_path}")
    create_app(settings).run(debug=False, host='0.0.0.0', port=5003)
