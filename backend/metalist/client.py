import logging
import re
from typing import Any, Dict, Optional

import httpx
import orjson
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .capabilities import supports_layer_metadata
from .errors import MalformedResponseError, MalformedUrlError, PortalError, TransportError
from .models import LayerSourceMap, MetadataDocumentMap, ServiceDescriptor, WebMap
from .reshape import layer_sources_to_documents, split_list_fields
from .urls import layer_sources_url, metadata_document_url, parse_service_url
from .utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_PORTAL_URL = "https://www.arcgis.com/sharing/rest"

_ITEM_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{32}$")


def describe_syntax_error(text: str, exc: ValueError) -> str:
    """Phrase a JSON decoding failure around the offending character.

    Servers that fail often answer with an HTML page, which reads as
    ``Unexpected token < in JSON at position 0``.
    """
    position = getattr(exc, 'pos', 0) or 0
    if position >= len(text):
        return f"Unexpected end of JSON input ({exc})"
    return f"Unexpected token {text[position]} in JSON at position {position} ({exc})"


def _contains_layer(layer_ids: Any, layer_id: int) -> bool:
    if not isinstance(layer_ids, list):
        return False
    return any(
        isinstance(candidate, (int, float)) and not isinstance(candidate, bool) and candidate == layer_id
        for candidate in layer_ids
    )


class LayerMetadataClient:
    """Resolves LayerMetadata extension documents for ArcGIS map services."""

    def __init__(
        self,
        timeout: int = 20,
        portal_url: str = DEFAULT_PORTAL_URL,
        webmap_max_attempts: int = 3,
    ):
        self.timeout = timeout
        self.portal_url = portal_url.rstrip('/')
        self.webmap_max_attempts = max(1, webmap_max_attempts)
        self.webmap_wait = wait_exponential(multiplier=1, min=4, max=10)

    async def __aenter__(self):
        self.session = httpx.AsyncClient(timeout=self.timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.session.aclose()

    async def _get_json(self, url: str) -> Any:
        """GET ``url?f=json`` and decode the body, whatever the status code."""
        logger.debug("Requesting %s", url)
        try:
            response = await self.session.get(url, params={'f': 'json'})
        except httpx.HTTPError as exc:
            logger.error("Request to %s failed: %s", url, exc)
            raise TransportError(f"Request to {url} failed: {exc}", url=url) from exc
        except httpx.InvalidURL as exc:
            logger.error("Cannot request %s: %s", url, exc)
            raise MalformedUrlError(url) from exc

        text = response.text
        try:
            return orjson.loads(text)
        except orjson.JSONDecodeError as exc:
            message = describe_syntax_error(text, exc)
            logger.error(
                "Response was not JSON",
                extra={'url': url, 'status_code': response.status_code, 'error': message}
            )
            raise MalformedResponseError(message, url=url, position=getattr(exc, 'pos', None)) from exc

    async def _get_json_object(self, url: str) -> Dict[str, Any]:
        payload = await self._get_json(url)
        if not isinstance(payload, dict):
            raise MalformedResponseError(
                f"Expected a JSON object from {url}, got {type(payload).__name__}",
                url=url
            )
        return payload

    async def get_service_descriptor(self, base_url: str) -> ServiceDescriptor:
        """Fetch a map service's root JSON with its comma separated lists split."""
        descriptor = split_list_fields(await self._get_json_object(base_url))
        if 'error' in descriptor:
            logger.warning(f"Map service {base_url} returned an error document: {descriptor['error']}")
        return descriptor

    async def get_layer_sources(self, url: str) -> LayerSourceMap:
        """Fetch the dataset to layer ID mapping published by the LayerMetadata extension."""
        return await self._get_json_object(layer_sources_url(url))

    async def get_map_service_metadata(self, url: str) -> Optional[MetadataDocumentMap]:
        """Get metadata document URLs for all datasets behind a service or one of its layers.

        Returns None when the service does not support the LayerMetadata
        extension, or when the requested layer is not listed under any dataset.
        """
        reference = parse_service_url(url)
        descriptor = await self.get_service_descriptor(reference.base_url)
        if not supports_layer_metadata(descriptor):
            logger.info(f"LayerMetadata is not supported by {reference.base_url}")
            return None

        layer_sources = await self.get_layer_sources(url)

        if reference.layer_id is None:
            documents = layer_sources_to_documents(layer_sources, reference.base_url)
            logger.info(f"Resolved {len(documents)} metadata documents for {reference.base_url}")
            return documents

        for dataset, layer_ids in layer_sources.items():
            if _contains_layer(layer_ids, reference.layer_id):
                return {dataset: metadata_document_url(reference.base_url, reference.layer_id)}

        logger.info(
            "Layer is not listed in layerSources",
            extra={'base_url': reference.base_url, 'layer_id': reference.layer_id}
        )
        return None

    async def get_web_map(self, item_id: str) -> WebMap:
        """Fetch a web map's item data from the portal."""
        if not _ITEM_ID_PATTERN.fullmatch(item_id or ''):
            raise ValueError(f"Invalid web map item ID: {item_id!r}")

        url = f"{self.portal_url}/content/items/{item_id}/data"

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.webmap_max_attempts),
            wait=self.webmap_wait,
            retry=retry_if_exception_type(TransportError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True
        ):
            with attempt:
                payload = await self._get_json_object(url)

        if 'error' in payload:
            error_info = payload['error'] or {}
            message = error_info.get('message') or 'Portal error'
            logger.error(f"Portal error for item {item_id}: {message}")
            raise PortalError(message, url=url, code=error_info.get('code'))

        try:
            return WebMap.model_validate(payload)
        except ValidationError as exc:
            raise MalformedResponseError(f"Item {item_id} is not a web map: {exc}", url=url) from exc


async def get_map_service_metadata(url: str, timeout: int = 20) -> Optional[MetadataDocumentMap]:
    """Resolve metadata documents for a single service or layer URL."""
    async with LayerMetadataClient(timeout=timeout) as client:
        return await client.get_map_service_metadata(url)
