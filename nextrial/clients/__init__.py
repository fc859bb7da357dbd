"""HTTP clients for remote services."""

from nextrial.clients.search_client import SearchBackendClient, create_client

__all__ = ["SearchBackendClient", "create_client"]
