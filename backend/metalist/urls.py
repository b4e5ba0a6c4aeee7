import re

from .errors import MalformedUrlError
from .models import ServiceReference

LAYER_METADATA_CAPABILITY = "LayerMetadata"

# 1: map service URL, 2: layer ID (absent for whole-service URLs)
_MAP_SERVICE_PATTERN = re.compile(r"^(.+?)(?:/(\d+))?/?$", re.ASCII)
_SINGLE_LAYER_PATTERN = re.compile(r"/\d+/?$", re.ASCII)


def is_single_layer(url: str) -> bool:
    """Return True when the URL ends with a numeric layer segment.

    >>> is_single_layer("https://example.com/arcgis/rest/services/svc/MapServer/0")
    True
    >>> is_single_layer("https://example.com/arcgis/rest/services/svc/MapServer0")
    False
    """
    return _SINGLE_LAYER_PATTERN.search(url) is not None


def parse_service_url(url: str) -> ServiceReference:
    """Split a map service or sublayer URL into its service URL and layer ID."""
    match = _MAP_SERVICE_PATTERN.fullmatch(url or "")
    if not match:
        raise MalformedUrlError(url)

    base_url, layer_id = match.group(1), match.group(2)
    return ServiceReference(
        base_url=base_url,
        layer_id=int(layer_id) if layer_id is not None else None,
    )


def extension_url(url: str, resource: str) -> str:
    trimmed = url[:-1] if url.endswith("/") else url
    return f"{trimmed}/exts/{LAYER_METADATA_CAPABILITY}/{resource}"


def layer_sources_url(url: str) -> str:
    """URL of the layerSources resource, built off the URL exactly as given.

    Sublayer URLs keep their layer segment here, so
    ``.../MapServer/3`` becomes ``.../MapServer/3/exts/LayerMetadata/layerSources``.
    """
    return extension_url(url, "layerSources")


def metadata_document_url(base_url: str, layer_id) -> str:
    if isinstance(layer_id, float) and layer_id.is_integer():
        layer_id = int(layer_id)
    return f"{base_url}/exts/{LAYER_METADATA_CAPABILITY}/metadata/{layer_id}"
