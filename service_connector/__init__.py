"""
TursoConnector service.
"""
