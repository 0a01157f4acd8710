# bl_core/blood_requests/errors.py
from __future__ import annotations

from typing import Any


class BloodRequestError(Exception):
    """
    Base for lifecycle failures. `code` is the stable error kind surfaced to
    clients in the error envelope.
    """
    code = "error"
    default_message = "Blood request operation failed."

    def __init__(self, message: str | None = None, *, details: Any = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class NotFound(BloodRequestError):
    code = "not_found"
    default_message = "Not found."


class RequestNotFound(NotFound):
    default_message = "Blood request not found."


class ResponseNotFound(NotFound):
    default_message = "Donor response not found."


class Forbidden(BloodRequestError):
    code = "permission_denied"
    default_message = "You do not have permission to perform this action."


class NotRequestOwner(Forbidden):
    default_message = "Blood request belongs to another hospital."


class Conflict(BloodRequestError):
    code = "conflict"
    default_message = "Blood request is being modified concurrently. Try again."


class AlreadyResponded(BloodRequestError):
    code = "already_responded"
    default_message = "You have already responded to this blood request."


class Invalid(BloodRequestError):
    code = "validation_error"
    default_message = "Invalid blood request data."
