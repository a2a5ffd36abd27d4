"""
Service module for the relay.

This module contains:
- RelayService: per-turn driver (restore session, route, persist)
"""

from relay_service.protocol.service.relay_service import RelayService

__all__ = [
    "RelayService",
]
