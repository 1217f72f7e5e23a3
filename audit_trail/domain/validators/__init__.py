"""Domain validators. Pure validation functions."""

from audit_trail.domain.validators.audit_validator import (
    parse_input,
    validate_object_id,
    validate_record_id,
)

__all__ = [
    "parse_input",
    "validate_object_id",
    "validate_record_id",
]
