"""Remote retrieval of documents and web pages."""

from .client import (
    FetchedResource,
    PageText,
    RetrievalError,
    build_client,
    fetch_pages,
    fetch_resource,
    html_to_page_text,
)

__all__ = [
    "FetchedResource",
    "PageText",
    "RetrievalError",
    "build_client",
    "fetch_pages",
    "fetch_resource",
    "html_to_page_text",
]
