"""
Core logic of the gateway.

This module is framework-agnostic - it doesn't import FastAPI or the
Google client library. The resolver and the transfer proxy reach Drive
only through the DriveClient protocol, which means they are tested
against the in-memory client.
"""
