"""
Domain package for the connector: the Exchange entity and its repository.
"""

from .exchange import Exchange
from .exchange_repository import ExchangeRepository, escape_sql_string

__all__ = [
    "Exchange",
    "ExchangeRepository",
    "escape_sql_string",
]
