"""
Plugbay Plugin System - Package model, ingestion, loading and lifecycle.

This module handles:
- Manifest parsing and validation
- Zip archive ingestion and export
- Dynamic loading into the host namespace
- Installed / blocked / seen-default state management
"""

__all__ = []
