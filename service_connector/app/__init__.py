"""
TursoConnector service package.

The connector answers game requests arriving over NATS by reading and
writing exchange records in a remote Turso (libSQL) database:

- app.main: Composition of components and the service runtime.
- app.messaging: Bus gateway, message envelopes and payload schemas.
- app.domain: Exchange entity and its SQL repository.
- app.adapters: Turso HTTP client and its connection throttle.
- app.caching: Bounded cache of read-query results.
- app.health: Aggregated health checks.
"""
