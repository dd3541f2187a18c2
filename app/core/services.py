"""
Base service layer patterns for business logic encapsulation.

This module provides foundational patterns for the service layer:
- ServiceResult: Standard result wrapper for consistent success/failure handling
- BaseService: Base class with common service utilities

Service Layer Philosophy:
    Services encapsulate business logic separate from views and models.
    Views handle HTTP concerns, models handle data, services handle logic.

Pattern Comparison:
    - ServiceResult: Use for expected failures (unlinked events, business rules)
    - Exceptions: Use for unexpected failures (database errors, bad payloads)

Usage:
    from core.services import BaseService, ServiceResult

    class MembershipService(BaseService):
        @classmethod
        def activate(cls, membership) -> ServiceResult[Membership]:
            if membership.status != MembershipStatus.PENDING:
                return ServiceResult.failure(
                    "Membership already active",
                    error_code="ALREADY_ACTIVE",
                )
            membership.activate()
            membership.save()
            cls.get_logger().info(f"Activated membership {membership.id}")
            return ServiceResult.success(membership)

Related:
    - core.exceptions: For unexpected/exceptional errors
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Generic, TypeVar

# Generic type for ServiceResult data
T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Provides consistent success/failure handling without exceptions.
    Use this for expected failures (business rule violations, missing links).

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code for client handling
        errors: Field-level errors for validation failures

    Usage:
        # Success case
        return ServiceResult.success(WebhookEventStatus.APPLIED)

        # Failure case
        return ServiceResult.failure(
            "No membership for subscription",
            error_code="UNRESOLVED_LINKAGE",
        )

        # Check result
        result = dispatch_event(event)
        if result.success:
            status = result.data
        else:
            logger.warning(f"{result.error} ({result.error_code})")
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """
        Create a successful result.

        Args:
            data: The result data

        Returns:
            ServiceResult with success=True and data set
        """
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code for client handling
            errors: Field-level errors (for validation failures)

        Returns:
            ServiceResult with success=False and error details
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            errors=errors,
        )

    def __bool__(self) -> bool:
        """Allow using result in boolean context."""
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Provides a logger per service class so log records can be filtered
    by service name.

    Design Notes:
        - Use @staticmethod or @classmethod (no instance state)
        - Services should be stateless
        - Use ServiceResult for expected failures
        - Raise exceptions for unexpected failures
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        Returns:
            Logger named "<module>.<ServiceClass>"

        Example:
            class MembershipService(BaseService):
                @classmethod
                def renew(cls, membership):
                    cls.get_logger().info(f"Renewing membership {membership.id}")
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")
