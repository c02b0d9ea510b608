class RecrawlError(Exception):
    """Base class for every error raised by the recrawl jobs."""


class MalformedRecord(RecrawlError):
    """A scraped record has no usable identifier and cannot be reconciled."""

    def __init__(self, message: str, record=None):
        super().__init__(message)
        self.record = record


class FetchError(RecrawlError):
    """An upstream request still failed after all retries."""

    def __init__(self, url: str, status_code=None, message: str = ""):
        self.url = url
        self.status_code = status_code
        detail = message or (f"HTTP {status_code}" if status_code else "request failed")
        super().__init__(f"{url}: {detail}")


class PersistenceError(RecrawlError):
    """The document store rejected a read or write."""


class CatalogValidationError(RecrawlError):
    """The catalog breaks an invariant that must abort the export."""
