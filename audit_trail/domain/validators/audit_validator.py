"""Validators for audit API input. Pure functions, no infrastructure or DB access."""

from typing import Any, Dict, List, Mapping, Type, TypeVar
from uuid import UUID

from pydantic import BaseModel, ValidationError

from audit_trail.domain.exceptions import DomainValidationError
from audit_trail.domain.schemas.audit import OBJECT_ID_PATTERN

ModelT = TypeVar("ModelT", bound=BaseModel)


def _itemize(exc: ValidationError) -> List[Dict[str, str]]:
    """Flatten pydantic errors into [{field, message}] using the wire (camelCase) names."""
    items: List[Dict[str, str]] = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        message = err.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        items.append({"field": ".".join(loc) or "query", "message": message})
    return items


def parse_input(model: Type[ModelT], data: Mapping[str, Any]) -> ModelT:
    """Validate raw query/body data into model. Raises DomainValidationError with per-field messages."""
    try:
        return model.model_validate(dict(data))
    except ValidationError as e:
        raise DomainValidationError("Validation failed", errors=_itemize(e)) from e


def validate_object_id(value: str, field: str = "id") -> str:
    """Enforce the 24-hex identity format used for actors and resources."""
    if not value or not OBJECT_ID_PATTERN.match(value):
        raise DomainValidationError(
            "Validation failed",
            errors=[{"field": field, "message": f"Invalid {field}"}],
        )
    return value


def validate_record_id(value: str) -> UUID:
    """Audit record ids are UUIDs. Raises DomainValidationError if malformed."""
    try:
        return UUID(value)
    except (TypeError, ValueError) as e:
        raise DomainValidationError(
            "Validation failed",
            errors=[{"field": "id", "message": "Invalid id"}],
        ) from e
