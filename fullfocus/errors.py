"""
Exception types raised by FullFocus components.
"""


class FullFocusError(Exception):
    """Base class for all FullFocus errors."""


class AccessDenied(FullFocusError):
    """Calendar access was not granted by the user or the OS."""


class ProviderError(FullFocusError):
    """The calendar provider failed to answer a query."""


class RegistrationError(FullFocusError):
    """The login-at-startup item could not be registered or removed."""
