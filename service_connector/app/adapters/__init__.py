"""
Adapters package for the connector.

Contains the Turso HTTP client and the throttle that bounds its concurrent
calls. The client encapsulates:

- The pipeline endpoint and request shape
- Retry policy via the shared resilient executor
- Error handling that turns operational failures into absent results
"""

from .throttle import ConnectionThrottle
from .turso_client import DatabaseMetrics, TursoClient, build_api_url

__all__ = [
    "ConnectionThrottle",
    "DatabaseMetrics",
    "TursoClient",
    "build_api_url",
]
