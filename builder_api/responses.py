"""
Response envelope helpers.

Every endpoint answers with ``{success, message, data?, error?}`` and a
conventional HTTP status code.
"""

from typing import Any, Optional

from flask import jsonify

from app_builder_core.exceptions import (
    BuilderError, ConnectionRejectedError, CorruptDocumentError, InvalidPropsError, NotFoundError,
    UpstreamUnavailableError
)

from .library import InvalidLibraryEntryError
from .schema_design import InvalidSchemaError


def success(message: str, data: Any = None, status: int = 200):
    body = {'success': True, 'message': message}
    if data is not None:
        body['data'] = data
    return jsonify(body), status


def failure(message: str, status: int, error: Optional[Any] = None):
    body = {'success': False, 'message': message}
    if error is not None:
        body['error'] = error
    return jsonify(body), status


def bad_request(message: str, error: Optional[Any] = None):
    return failure(message, 400, error)


def unauthorized(message: str = 'Authentication required'):
    return failure(message, 401)


def forbidden(message: str = 'Access to this project is not allowed'):
    return failure(message, 403)


def not_found(message: str, error: Optional[Any] = None):
    return failure(message, 404, error)


def too_many_requests(message: str, retry_after: int):
    response, status = failure(message, 429, {'retryAfter': retry_after})
    response.headers['Retry-After'] = str(retry_after)
    return response, status


def status_for(error: BuilderError, from_storage: bool = False) -> int:
    """HTTP status code for a core error."""
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, UpstreamUnavailableError):
        return 502
    if isinstance(error, CorruptDocumentError):
        # A stored document failing validation is our fault, a request body is the caller's.
        return 500 if from_storage else 400
    if isinstance(error, (ConnectionRejectedError, InvalidPropsError, InvalidSchemaError,
                          InvalidLibraryEntryError)):
        return 400
    return 500


def builder_error(error: BuilderError, from_storage: bool = False):
    return failure(error.message, status_for(error, from_storage), error.to_dict())
