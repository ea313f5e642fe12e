"""
Typed Exception Hierarchy for LicenseIQ.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Tenancy enforcement has to fail precisely and uniformly. Callers must never
parse messages to tell "not found" from "not allowed", and the HTTP boundary
must be able to fold both into one response without losing the internal cause.

Every error therefore:
  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes (ids, statuses, field errors)

Example - WRONG way to handle errors:
    try:
        lineage.approve(version_id, actor_id)
    except Exception as e:
        if "not found" in str(e):
            ...

Example - RIGHT way:
    try:
        lineage.approve(version_id, actor_id)
    except MappingVersionNotFoundError as e:
        log.info("approve_missing", extra={"mapping_id": e.mapping_id})
    except InvalidMappingTransitionError as e:
        api_response(code=e.code, current=e.current_status)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LicenseIQError (base)
    |
    +-- AccessError
    |   +-- AccessDeniedError
    |
    +-- NotFoundError
    |   +-- UserNotFoundError
    |   +-- OrgEntityNotFoundError
    |   +-- ResourceNotFoundError
    |   +-- MappingVersionNotFoundError
    |   +-- MappingTargetVersionNotFoundError
    |   +-- ImportJobNotFoundError
    |   +-- ImportSourceNotFoundError
    |
    +-- InputValidationError
    |   +-- InvalidScopeError
    |   +-- OrgHierarchyMismatchError
    |   +-- DuplicateAssignmentError
    |   +-- FilterConfigError
    |   +-- MappingContentError
    |   +-- ScheduleConfigError
    |   +-- ImportTooLargeError
    |
    +-- StateTransitionError
    |   +-- InvalidMappingTransitionError
    |   +-- MappingHasDescendantsError
    |   +-- MappingNotUsableError
    |   +-- InvalidJobTransitionError
    |
    +-- IntegrityFailure
    |   +-- LineageCycleError
    |   +-- LineageLimitExceededError
    |
    +-- RecordMaterializationError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                         | HTTP | When Raised
----------------|------------------------------|------|---------------------------------
Access          | ACCESS_DENIED                | 403  | Out of scope, not editor, no company
----------------|------------------------------|------|---------------------------------
Not found       | USER_NOT_FOUND               | 403  | Unknown user id
                | ORG_ENTITY_NOT_FOUND         | 403  | Unknown company / BU / location / role
                | RESOURCE_NOT_FOUND           | 403  | Unknown scoped resource id
                | MAPPING_VERSION_NOT_FOUND    | 403  | Unknown mapping version id
                | MAPPING_TARGET_NOT_FOUND     | 403  | Revert target not in lineage
                | IMPORT_JOB_NOT_FOUND         | 403  | Unknown import job id
                | IMPORT_SOURCE_NOT_FOUND      | 403  | Unknown import source id
----------------|------------------------------|------|---------------------------------
Validation      | VALIDATION_ERROR             | 400  | Malformed input (base)
                | INVALID_SCOPE                | 400  | Write scope has no company
                | ORG_HIERARCHY_MISMATCH       | 400  | BU/location outside company
                | DUPLICATE_ASSIGNMENT         | 400  | Same user + scope twice
                | INVALID_FILTER_CONFIG        | 400  | Bad pre-import filter
                | INVALID_MAPPING_CONTENT      | 400  | Bad mapping rules
                | INVALID_SCHEDULE             | 400  | Bad schedule metadata
                | IMPORT_TOO_LARGE             | 400  | Row count over configured limit
----------------|------------------------------|------|---------------------------------
Transition      | INVALID_MAPPING_TRANSITION   | 400  | Lifecycle forbids the move
                | MAPPING_HAS_DESCENDANTS      | 400  | Deleting a draft with children
                | MAPPING_NOT_USABLE           | 400  | Status not usable for job type
                | INVALID_JOB_TRANSITION       | 400  | Job status forbids the action
----------------|------------------------------|------|---------------------------------
Integrity       | LINEAGE_CYCLE                | 500  | Parent pointers form a cycle
                | LINEAGE_LIMIT_EXCEEDED       | 500  | Lineage larger than node cap
----------------|------------------------------|------|---------------------------------
Row             | ROW_FAILURE                  |  -   | Caught per record in commit
Config          | CONFIGURATION_ERROR          | 500  | Invalid settings file

===============================================================================
HANDLING PATTERNS
===============================================================================

1. NOT FOUND IS ACCESS DENIED AT THE BOUNDARY:

    except NotFoundError:
        return problem_for(AccessDeniedError("not_found"))

   Internally the distinction is kept (for logs and tests); externally a
   caller can never tell a missing id from a forbidden one.

2. ROW FAILURES NEVER ESCAPE THE COMMIT LOOP:

   RecordMaterializationError (and any other exception raised while
   materializing one record) is captured on the ImportedRecord and counted.

3. INTEGRITY FAILURES ARE SYSTEM ERRORS:

   A lineage cycle means stored data is corrupt. It is logged with full
   context and surfaced as a generic 500.
"""

from typing import Any


class LicenseIQError(Exception):
    """
    Base exception for all LicenseIQ errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LICENSEIQ_ERROR"


# Access-related exceptions

ACCESS_DENIED_MESSAGE = "Access denied"


class AccessError(LicenseIQError):
    """Base exception for access-control errors."""

    code: str = "ACCESS_ERROR"


class AccessDeniedError(AccessError):
    """
    Context failed the org filter or the ownership/role check.

    The message is always the same. The internal cause is kept on
    ``reason`` for logging only.
    """

    code: str = "ACCESS_DENIED"

    def __init__(self, reason: str = "denied", resource_id: Any = None):
        self.reason = reason
        self.resource_id = str(resource_id) if resource_id is not None else None
        super().__init__(ACCESS_DENIED_MESSAGE)


# Not-found exceptions


class NotFoundError(LicenseIQError):
    """Base exception for missing referenced entities."""

    code: str = "NOT_FOUND"


class UserNotFoundError(NotFoundError):
    """User with given ID was not found."""

    code: str = "USER_NOT_FOUND"

    def __init__(self, user_id: Any):
        self.user_id = str(user_id)
        super().__init__(f"User not found: {user_id}")


class OrgEntityNotFoundError(NotFoundError):
    """Company, business unit, location or role assignment was not found."""

    code: str = "ORG_ENTITY_NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: Any):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        super().__init__(f"{entity_type} not found: {entity_id}")


class ResourceNotFoundError(NotFoundError):
    """Scoped resource with given ID was not found."""

    code: str = "RESOURCE_NOT_FOUND"

    def __init__(self, resource_type: str, resource_id: Any):
        self.resource_type = resource_type
        self.resource_id = str(resource_id)
        super().__init__(f"{resource_type} not found: {resource_id}")


class MappingVersionNotFoundError(NotFoundError):
    """Mapping version with given ID was not found."""

    code: str = "MAPPING_VERSION_NOT_FOUND"

    def __init__(self, mapping_id: Any):
        self.mapping_id = str(mapping_id)
        super().__init__(f"Mapping version not found: {mapping_id}")


class MappingTargetVersionNotFoundError(NotFoundError):
    """Requested version number is not part of the lineage history."""

    code: str = "MAPPING_TARGET_NOT_FOUND"

    def __init__(self, mapping_id: Any, target_version: int):
        self.mapping_id = str(mapping_id)
        self.target_version = target_version
        super().__init__(
            f"Version {target_version} not found in lineage of mapping {mapping_id}"
        )


class ImportJobNotFoundError(NotFoundError):
    """Import job with given ID was not found."""

    code: str = "IMPORT_JOB_NOT_FOUND"

    def __init__(self, job_id: Any):
        self.job_id = str(job_id)
        super().__init__(f"Import job not found: {job_id}")


class ImportSourceNotFoundError(NotFoundError):
    """Import source with given ID was not found."""

    code: str = "IMPORT_SOURCE_NOT_FOUND"

    def __init__(self, source_id: Any):
        self.source_id = str(source_id)
        super().__init__(f"Import source not found: {source_id}")


# Validation exceptions


class InputValidationError(LicenseIQError):
    """Malformed input. ``errors`` holds one message per problem found."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, errors: list[str] | None = None):
        self.errors = list(errors or [])
        super().__init__(message)


class InvalidScopeError(InputValidationError):
    """A write scope is incomplete or not admitted by the caller's context."""

    code: str = "INVALID_SCOPE"

    def __init__(self, message: str):
        super().__init__(message)


class OrgHierarchyMismatchError(InputValidationError):
    """Business unit or location does not belong to the given parent."""

    code: str = "ORG_HIERARCHY_MISMATCH"

    def __init__(self, child_type: str, child_id: Any, parent_type: str, parent_id: Any):
        self.child_type = child_type
        self.child_id = str(child_id)
        self.parent_type = parent_type
        self.parent_id = str(parent_id)
        super().__init__(
            f"{child_type} {child_id} does not belong to {parent_type} {parent_id}"
        )


class DuplicateAssignmentError(InputValidationError):
    """User already holds an assignment at exactly this scope."""

    code: str = "DUPLICATE_ASSIGNMENT"

    def __init__(self, user_id: Any):
        self.user_id = str(user_id)
        super().__init__(f"User {user_id} already has a role at this scope")


class FilterConfigError(InputValidationError):
    """Pre-import filter configuration is invalid."""

    code: str = "INVALID_FILTER_CONFIG"

    def __init__(self, errors: list[str]):
        super().__init__(
            f"Invalid filter configuration: {'; '.join(errors)}", errors
        )


class MappingContentError(InputValidationError):
    """Mapping content failed write-time validation."""

    code: str = "INVALID_MAPPING_CONTENT"

    def __init__(self, errors: list[str]):
        super().__init__(f"Invalid mapping content: {'; '.join(errors)}", errors)


class ScheduleConfigError(InputValidationError):
    """Import source schedule metadata is invalid."""

    code: str = "INVALID_SCHEDULE"

    def __init__(self, errors: list[str]):
        super().__init__(f"Invalid schedule: {'; '.join(errors)}", errors)


class ImportTooLargeError(InputValidationError):
    """Upload exceeds the configured row limit."""

    code: str = "IMPORT_TOO_LARGE"

    def __init__(self, row_count: int, max_rows: int):
        self.row_count = row_count
        self.max_rows = max_rows
        super().__init__(f"Import has {row_count} rows; limit is {max_rows}")


# State transition exceptions


class StateTransitionError(LicenseIQError):
    """Base exception for lifecycle violations."""

    code: str = "INVALID_TRANSITION"


class InvalidMappingTransitionError(StateTransitionError):
    """Mapping lifecycle does not allow the requested transition."""

    code: str = "INVALID_MAPPING_TRANSITION"

    def __init__(self, mapping_id: Any, current_status: str, target_status: str):
        self.mapping_id = str(mapping_id)
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(
            f"Mapping {mapping_id} cannot move from {current_status} to {target_status}"
        )


class MappingHasDescendantsError(StateTransitionError):
    """A draft with child versions cannot be deleted."""

    code: str = "MAPPING_HAS_DESCENDANTS"

    def __init__(self, mapping_id: Any, child_count: int):
        self.mapping_id = str(mapping_id)
        self.child_count = child_count
        super().__init__(
            f"Mapping {mapping_id} has {child_count} child version(s) and cannot be deleted"
        )


class MappingNotUsableError(StateTransitionError):
    """Mapping status does not allow it to drive this kind of import."""

    code: str = "MAPPING_NOT_USABLE"

    def __init__(self, mapping_id: Any, status: str, job_type: str):
        self.mapping_id = str(mapping_id)
        self.status = status
        self.job_type = job_type
        super().__init__(
            f"Mapping {mapping_id} with status {status} cannot be used for {job_type} jobs"
        )


class InvalidJobTransitionError(StateTransitionError):
    """Import job status does not allow the requested action."""

    code: str = "INVALID_JOB_TRANSITION"

    def __init__(self, job_id: Any, current_status: str, action: str):
        self.job_id = str(job_id)
        self.current_status = current_status
        self.action = action
        super().__init__(f"Cannot {action} import job {job_id} in status {current_status}")


# Integrity (system) exceptions


class IntegrityFailure(LicenseIQError):
    """Stored data violates a structural invariant. Surfaced as a system error."""

    code: str = "INTEGRITY_FAILURE"


class LineageCycleError(IntegrityFailure):
    """Parent pointers of a mapping lineage form a cycle."""

    code: str = "LINEAGE_CYCLE"

    def __init__(self, mapping_id: Any, repeated_id: Any):
        self.mapping_id = str(mapping_id)
        self.repeated_id = str(repeated_id)
        super().__init__(
            f"Lineage of mapping {mapping_id} revisits {repeated_id}"
        )


class LineageLimitExceededError(IntegrityFailure):
    """Lineage walk visited more nodes than the configured cap."""

    code: str = "LINEAGE_LIMIT_EXCEEDED"

    def __init__(self, mapping_id: Any, limit: int):
        self.mapping_id = str(mapping_id)
        self.limit = limit
        super().__init__(f"Lineage of mapping {mapping_id} exceeds {limit} versions")


# Row-level exceptions


class RecordMaterializationError(LicenseIQError):
    """One imported record could not become a canonical record."""

    code: str = "ROW_FAILURE"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


# Configuration exceptions


class ConfigurationError(LicenseIQError):
    """Settings file is missing, unreadable or malformed."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, message: str, source: str | None = None):
        self.source = source
        super().__init__(message)
