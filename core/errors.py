from __future__ import annotations

from typing import Optional


class FactoryLinkError(Exception):
    """Base error. ``message`` is safe to show to the end user."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(FactoryLinkError):
    """Malformed input: bad email, weak password, wrong confirmation text."""


class BusinessRuleError(FactoryLinkError):
    """Well-formed request rejected by a store rule (duplicate email, deleted account, ...)."""


class AccountLockedError(BusinessRuleError):
    def __init__(self, message: str, remaining_minutes: Optional[int] = None) -> None:
        super().__init__(message)
        self.remaining_minutes = remaining_minutes


class NotAuthenticatedError(FactoryLinkError):
    pass


class EmptySelectionError(FactoryLinkError):
    pass
