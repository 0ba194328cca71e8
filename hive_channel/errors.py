"""
Error definitions for the Hive channel integration.

This module defines the exception classes raised by the request helper,
the outbound router and the event stream client.
"""

from typing import Any


class HiveError(Exception):
    """Base exception for all Hive channel errors."""

    def __init__(self, message: str, path: str = None):
        """
        Initialize the Hive error.

        Args:
            message: Error message
            path: API path involved in the error (optional)
        """
        self.message = message
        self.path = path
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the error message with the API path if available."""
        if self.path:
            return f"{self.message} (path: {self.path})"
        return self.message


class ConfigError(HiveError):
    """Error in configuration, e.g. a missing credential."""

    def __init__(self, message: str, config_key: str = None):
        """
        Initialize the configuration error.

        Args:
            message: Error message
            config_key: Configuration key that caused the error (optional)
        """
        self.config_key = config_key
        super().__init__(message)

    def _format_message(self) -> str:
        """Format the error message with config key if available."""
        base_message = super()._format_message()
        if self.config_key:
            return f"{base_message} (config: {self.config_key})"
        return base_message


class TransportError(HiveError):
    """Connection, timeout or TLS failure talking to the remote service."""

    def __init__(self, message: str, method: str = None, path: str = None):
        self.method = method
        super().__init__(message, path)

    def _format_message(self) -> str:
        if self.method and self.path:
            return f"{self.message} ({self.method} {self.path})"
        return super()._format_message()


class RequestError(HiveError):
    """
    Non-success HTTP response from the remote service.

    The string form is the bare message so callers can show it to users
    as-is; status code, method, path and the parsed body are kept as
    attributes.
    """

    def __init__(
        self,
        message: str,
        status_code: int = None,
        method: str = None,
        path: str = None,
        body: Any = None,
    ):
        """
        Initialize the request error.

        Args:
            message: Error message extracted from the response
            status_code: HTTP status code (optional)
            method: HTTP method of the failed request (optional)
            path: API path of the failed request (optional)
            body: Parsed response body (optional)
        """
        self.status_code = status_code
        self.method = method
        self.body = body
        super().__init__(message, path)

    def _format_message(self) -> str:
        return self.message


class ValidationError(HiveError):
    """Missing or invalid routing field, raised before any network call."""

    def __init__(self, message: str, field: str = None):
        """
        Initialize the validation error.

        Args:
            message: Error message
            field: Name of the field that failed validation (optional)
        """
        self.field = field
        super().__init__(message)


class EventStreamError(HiveError):
    """Failed handshake on the event stream endpoint."""

    def __init__(self, message: str, status_code: int = None):
        self.status_code = status_code
        super().__init__(message)

    def _format_message(self) -> str:
        base_message = super()._format_message()
        if self.status_code:
            return f"{base_message} (status: {self.status_code})"
        return base_message
