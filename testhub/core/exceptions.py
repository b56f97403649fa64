"""
Platform-wide exception hierarchy.

Services raise these; the app factory registers one handler per type and
renders it through ``testhub.utils.errors.api_error``. Services never build
HTTP responses themselves.

Usage:
    from testhub.core.exceptions import NotFoundError, ConflictError

    raise NotFoundError(resource="Project", resource_id=42)
    raise ConflictError(resource="TestSuite", field="name", value="Smoke")
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist within the given scope.

    Security note: used for genuinely missing records, soft-deleted records
    AND hierarchy-path mismatches. A 403 would confirm the resource exists in
    another tenant; a 404 does not.

    Args:
        resource: Human-readable entity name (e.g. "Project", "TestStep").
        resource_id: The PK that was looked up. Included in logs, not in HTTP response.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)

    @property
    def public_message(self) -> str:
        return f"{self.resource} not found"


class ValidationError(Exception):
    """Raised when input is well-formed but violates a business rule.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown. Keys are field names.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would duplicate a unique value.

    Args:
        resource: Model name.
        field: The unique field that would be duplicated.
        value: The conflicting value.
    """

    def __init__(self, resource: str, field: str, value: str | int | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class StateConflictError(Exception):
    """Raised when the target is in a state that forbids the operation.

    Examples: responding to an invitation twice, inviting an existing member,
    demoting the last owner of a company.
    """


class ForbiddenError(Exception):
    """Raised when an authenticated principal may not perform the operation."""


class NotMemberError(ForbiddenError):
    """Principal has no membership in the company."""

    def __init__(self, company_id: int) -> None:
        self.company_id = company_id
        super().__init__("You are not a member of this company")


class InsufficientRoleError(ForbiddenError):
    """Principal is a member but its role is below the required minimum."""

    def __init__(self, role: str, required: str) -> None:
        self.role = role
        self.required = required
        super().__init__(f"Requires {required} role or higher (you are {role})")


class ExpiredError(Exception):
    """Raised when a time-limited object (an invitation) is past its expiry."""


class AuthenticationError(Exception):
    """Raised when no valid principal is available or credentials are wrong."""
