"""
Infrastructure layer for bbserver.

Contains abstractions for external systems:
- HttpClient: HTTP access to the Bitbucket Server REST API
- FileStore: Directory-backed key/value persistence for cached descriptors

These provide clean interfaces that can be replaced with fakes for testing.
"""

from .http_client import HttpClient, HttpResponse
from .file_store import FileStore

__all__ = [
    'HttpClient',
    'HttpResponse',
    'FileStore',
]
