"""
HTTP Error Mapping
Translates httpx failures into the collaborator error taxonomy
"""
import logging
from typing import NoReturn

import httpx

from engagement.domain.errors import (
    CollaboratorError,
    PermanentCollaboratorError,
    TransientCollaboratorError,
)

logger = logging.getLogger(__name__)

# 4xx codes that are worth retrying on the next tick
_RETRYABLE_CLIENT_CODES = {408, 409, 425, 429}


def error_for_status(response: httpx.Response, collaborator: str) -> CollaboratorError:
    """Collaborator error matching a non-2xx response."""
    code = response.status_code
    text = response.text[:300]
    message = f"{collaborator} returned {code}: {text}"
    if code >= 500 or code in _RETRYABLE_CLIENT_CODES:
        return TransientCollaboratorError(message, collaborator=collaborator, status_code=code)
    return PermanentCollaboratorError(message, collaborator=collaborator, status_code=code)


def raise_for_status(response: httpx.Response, collaborator: str) -> None:
    if response.is_success:
        return
    raise error_for_status(response, collaborator)


def raise_transport_error(error: httpx.HTTPError, collaborator: str) -> NoReturn:
    """Re-raise a transport-level httpx error (timeout, connect, protocol) as transient."""
    if isinstance(error, httpx.TimeoutException):
        message = f"{collaborator} timed out: {error}"
    else:
        message = f"{collaborator} unreachable: {error}"
    logger.warning(message)
    raise TransientCollaboratorError(message, collaborator=collaborator) from error
