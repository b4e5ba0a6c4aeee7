from typing import Optional


class LayerMetadataError(Exception):
    """Base class for failures while resolving layer metadata."""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class MalformedUrlError(LayerMetadataError):
    """Raised when a URL cannot be split into a service URL and layer ID."""

    def __init__(self, url: str):
        super().__init__(f"Unrecognized URL format: {url!r}", url=url)


class TransportError(LayerMetadataError):
    """Raised when the request to a map service fails at the network level."""


class MalformedResponseError(LayerMetadataError):
    """Raised when a map service answers with something other than the expected JSON.

    This is usually an HTML error page, in which case the message reads
    ``Unexpected token < in JSON at position 0``.
    """

    def __init__(self, message: str, url: Optional[str] = None, position: Optional[int] = None):
        super().__init__(message, url=url)
        self.position = position


class PortalError(LayerMetadataError):
    """Raised when the portal answers an item request with an error document."""

    def __init__(self, message: str, url: Optional[str] = None, code: Optional[int] = None):
        super().__init__(message, url=url)
        self.code = code
