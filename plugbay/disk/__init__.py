"""
Plugbay Disk Synchronization - Server-side plugin storage and its HTTP protocol.

This module handles:
- Physical package storage (list / upload / remove)
- The FastAPI disk protocol server, including the two-phase destroy
- The httpx client hosts use to talk to it
"""

__all__ = []
