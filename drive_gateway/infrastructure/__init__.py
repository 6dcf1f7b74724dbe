"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- drive: Google Drive storage backend

These wrappers translate between external formats and our domain models.
"""
