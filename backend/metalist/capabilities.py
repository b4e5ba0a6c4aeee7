from typing import Any, Mapping

from .urls import LAYER_METADATA_CAPABILITY


def supports_layer_metadata(descriptor: Mapping[str, Any]) -> bool:
    """Check whether "LayerMetadata" is listed in the service's supportedExtensions.

    The match is exact and case-sensitive. Missing or empty lists mean no support.
    """
    extensions = descriptor.get("supportedExtensions")
    if not extensions or not isinstance(extensions, (list, tuple, set, frozenset)):
        return False
    return LAYER_METADATA_CAPABILITY in extensions
