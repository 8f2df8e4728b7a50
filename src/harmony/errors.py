"""Error taxonomy shared by the data access layer and the HTTP surface.

Each error carries the HTTP status it maps to, so the API layer can render
any of them without knowing which repository call raised it.
"""

from __future__ import annotations

from typing import Any


class HarmonyError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict[str, Any]:
        return {"message": self.message}


class ValidationError(HarmonyError):
    status_code = 400

    def __init__(self, field: str, reason: str):
        super().__init__(f"{field}: {reason}")
        self.field = field
        self.reason = reason

    def to_payload(self) -> dict[str, Any]:
        return {"message": self.message, "field": self.field, "reason": self.reason}


class UnauthorizedError(HarmonyError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class ForbiddenError(HarmonyError):
    status_code = 403


class NotFoundError(HarmonyError):
    status_code = 404

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(HarmonyError):
    status_code = 409


class InvalidTransitionError(HarmonyError):
    status_code = 409

    def __init__(self, entity: str, current: str, requested: str):
        super().__init__(f"{entity} cannot move from '{current}' to '{requested}'")
        self.entity = entity
        self.current = current
        self.requested = requested
