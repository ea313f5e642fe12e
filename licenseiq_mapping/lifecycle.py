"""
Mapping version lifecycle status.

Versions are append-only.  Each version declares its parent.  Only an
APPROVED version may drive a committing import; at most one version per
lineage is APPROVED at any time.  Reverting forks a new DRAFT from a
historical version and is not a transition of the source node.
"""

from enum import Enum, unique


@unique
class MappingStatus(str, Enum):
    """Lifecycle status for a mapping version."""

    DRAFT = "draft"
    APPROVED = "approved"
    DEPRECATED = "deprecated"


# Allowed status transitions (from -> set of valid next states)
ALLOWED_TRANSITIONS: dict[MappingStatus, frozenset[MappingStatus]] = {
    MappingStatus.DRAFT: frozenset({MappingStatus.APPROVED, MappingStatus.DEPRECATED}),
    MappingStatus.APPROVED: frozenset({MappingStatus.DEPRECATED}),
    MappingStatus.DEPRECATED: frozenset(),  # Terminal
}


def validate_transition(current: MappingStatus, target: MappingStatus) -> bool:
    """Check if a status transition is valid."""
    return MappingStatus(target) in ALLOWED_TRANSITIONS.get(
        MappingStatus(current), frozenset()
    )
