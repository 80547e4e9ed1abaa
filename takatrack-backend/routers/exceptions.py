"""
Custom exceptions shared by the API routers
"""

from fastapi import HTTPException, status


class ResourceNotFoundError(HTTPException):
    """Requested row does not exist."""

    def __init__(self, resource_name: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource_name} not found"
        )


class NotOwnerError(HTTPException):
    """Row exists but belongs to another user."""

    def __init__(self, resource_name: str):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"{resource_name} doesn't belong to you"
        )


class MissingRoleError(HTTPException):
    """User lacks every role the endpoint accepts."""

    def __init__(self, role_names):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Access denied. Requires one of the roles: {', '.join(role_names)}"
        )


class BusinessRuleError(HTTPException):
    """Request is well-formed but violates a domain rule."""

    def __init__(self, detail: str):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail
        )
