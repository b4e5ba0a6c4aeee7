import asyncio
from typing import List, Optional

from .client import DEFAULT_PORTAL_URL, LayerMetadataClient
from .models import (
    LayerMetadataEntry, MetadataDocument, MetadataDocumentMap, OperationalLayer, WebMap
)
from .utils.logging import get_logger

logger = get_logger(__name__)

NO_METADATA_MESSAGE = "No metadata available"


async def _resolve_layer(
    client: LayerMetadataClient,
    layer: OperationalLayer
) -> Optional[MetadataDocumentMap]:
    if not layer.url:
        logger.debug(f"Operational layer {layer.id} has no service URL")
        return None
    return await client.get_map_service_metadata(layer.url)


def _to_documents(documents: MetadataDocumentMap) -> List[MetadataDocument]:
    items = []
    for name, url in documents.items():
        if isinstance(url, str):
            items.append(MetadataDocument(name=name, url=url))
        else:
            logger.debug(f"Skipping dataset {name} without a metadata URL")
    return items


async def build_metadata_list(
    client: LayerMetadataClient,
    webmap: WebMap
) -> List[LayerMetadataEntry]:
    """Resolve metadata documents for every operational layer of a web map.

    Layers are resolved concurrently. A failed layer gets its error message
    on the entry instead of failing the whole list.
    """
    layers = webmap.operationalLayers
    results = await asyncio.gather(
        *(_resolve_layer(client, layer) for layer in layers),
        return_exceptions=True
    )

    entries: List[LayerMetadataEntry] = []
    for layer, result in zip(layers, results):
        entry = LayerMetadataEntry(id=layer.id, title=layer.title, url=layer.url)
        if isinstance(result, BaseException):
            logger.error(
                "Metadata resolution failed",
                extra={'layer_id': layer.id, 'url': layer.url, 'error': str(result)}
            )
            entry.error = str(result) or NO_METADATA_MESSAGE
        elif result is not None:
            entry.documents = _to_documents(result)
        entries.append(entry)

    resolved = sum(1 for entry in entries if entry.documents is not None)
    logger.info(f"Resolved metadata for {resolved} of {len(entries)} operational layers")
    return entries


async def build_web_map_metadata(
    item_id: str,
    timeout: int = 20,
    portal_url: str = DEFAULT_PORTAL_URL,
    webmap_max_attempts: int = 3
) -> List[LayerMetadataEntry]:
    """Fetch a web map from the portal and resolve metadata for all its layers."""
    async with LayerMetadataClient(
        timeout=timeout,
        portal_url=portal_url,
        webmap_max_attempts=webmap_max_attempts
    ) as client:
        webmap = await client.get_web_map(item_id)
        return await build_metadata_list(client, webmap)
