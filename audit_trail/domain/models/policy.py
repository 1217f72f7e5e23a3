"""Policy lifecycle. Monotonic draft -> published -> archived; no reverse transitions."""

from enum import Enum
from typing import Dict, FrozenSet

from audit_trail.domain.exceptions import InvalidStatusTransitionError


class PolicyStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


# Allowed status transitions: from_status -> set of valid next statuses
_STATUS_TRANSITIONS: Dict[PolicyStatus, FrozenSet[PolicyStatus]] = {
    PolicyStatus.DRAFT: frozenset({PolicyStatus.PUBLISHED, PolicyStatus.ARCHIVED}),
    PolicyStatus.PUBLISHED: frozenset({PolicyStatus.ARCHIVED}),
    PolicyStatus.ARCHIVED: frozenset(),
}


def validate_policy_transition(current: PolicyStatus, new: PolicyStatus) -> None:
    """Validate that transition from current to new is allowed. Raises if invalid."""
    allowed = _STATUS_TRANSITIONS.get(current, frozenset())
    if new not in allowed:
        raise InvalidStatusTransitionError(
            f"Invalid policy status transition from {current.value} to {new.value}"
        )
