"""Post-parse rewrites of ArcGIS REST JSON documents.

Both passes walk the decoded value tree depth first and rebuild it, so
children are rewritten before the container that holds them.
"""
import re
from typing import Any, Callable, Optional

from .urls import metadata_document_url

# Value rewrite hook: (key, value) -> value. Keys are None for list items and the root.
Rewriter = Callable[[Optional[str], Any], Any]

_LIST_FIELD_PATTERN = re.compile(r"^(?:keywords|capabilities|supported.*)$", re.IGNORECASE)
_LIST_SEPARATOR = re.compile(r",\s*")


def rewrite(value: Any, rewriter: Rewriter, key: Optional[str] = None) -> Any:
    if isinstance(value, dict):
        value = {name: rewrite(item, rewriter, name) for name, item in value.items()}
    elif isinstance(value, list):
        value = [rewrite(item, rewriter) for item in value]
    return rewriter(key, value)


def is_list_field(key: Optional[str]) -> bool:
    return key is not None and _LIST_FIELD_PATTERN.match(key) is not None


def split_list_fields(document: Any) -> Any:
    """Turn comma separated descriptor fields into lists of strings.

    ``{"supportedExtensions": "KmlServer, LayerMetadata"}`` becomes
    ``{"supportedExtensions": ["KmlServer", "LayerMetadata"]}``. Applies to
    ``keywords``, ``capabilities`` and every ``supported*`` field at any depth.
    """

    def split(key: Optional[str], value: Any) -> Any:
        if is_list_field(key) and isinstance(value, str):
            return [part.strip() for part in _LIST_SEPARATOR.split(value)]
        return value

    return rewrite(document, split)


def layer_sources_to_documents(document: Any, base_url: str) -> Any:
    """Replace every non-empty layer ID list with the metadata URL of its first ID.

    Layers sharing a dataset all serve the same metadata document, so the
    first ID stands in for the rest.
    """

    def substitute(key: Optional[str], value: Any) -> Any:
        if isinstance(value, list) and value:
            return metadata_document_url(base_url, value[0])
        return value

    return rewrite(document, substitute)
