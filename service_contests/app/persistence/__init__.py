"""
Persistence contract for the Contest Service.

The relational store is an external collaborator; only its query
interface is defined here.
"""

from .store import QueryStore

__all__ = ["QueryStore"]
