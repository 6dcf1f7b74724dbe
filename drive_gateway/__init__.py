"""
Drive Gateway - a small REST API over a Google Drive folder.

This package contains the complete application:
- core: Category resolution, transfer proxy and domain models
- infrastructure: Google Drive client (and its in-memory mock)
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
