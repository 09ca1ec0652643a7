"""
Shared error handling for the TursoConnector.
"""

from typing import Dict, Any, Optional


class ConnectorException(Exception):
    """Base exception for connector components."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a loggable dictionary."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(ConnectorException):
    """Configuration is missing or invalid."""

    def __init__(self, message: str = "Invalid configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)


class BusConnectionError(ConnectorException):
    """Message bus is unreachable."""

    def __init__(self, message: str = "Message bus unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("BUS_CONNECTION_ERROR", message, details)


class DatabaseUnavailableError(ConnectorException):
    """Remote database did not answer the connectivity probe."""

    def __init__(self, message: str = "Database unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("DATABASE_UNAVAILABLE", message, details)


class GatewayStateError(ConnectorException):
    """Gateway lifecycle operation attempted from the wrong state."""

    def __init__(self, message: str = "Invalid gateway state", details: Optional[Dict[str, Any]] = None):
        super().__init__("GATEWAY_STATE_ERROR", message, details)
