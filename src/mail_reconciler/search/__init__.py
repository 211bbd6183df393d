"""Search across loaded server headers, the local archive and the server."""

from .filters import SearchFilters, SearchLocation
from .provider import MailSearchProvider, RemoteSearcher, gmail_query

__all__ = ["MailSearchProvider", "RemoteSearcher", "SearchFilters", "SearchLocation", "gmail_query"]
