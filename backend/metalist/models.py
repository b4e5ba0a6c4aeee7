from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field, ConfigDict

# Free-form map service root document (``{service}?f=json``)
ServiceDescriptor = Dict[str, Any]
# Dataset name -> IDs of the layers drawing from it
LayerSourceMap = Dict[str, List[int]]
# Dataset name -> metadata document URL
MetadataDocumentMap = Dict[str, str]


class ServiceReference(BaseModel):
    base_url: str
    layer_id: Optional[int] = None

    model_config = ConfigDict(frozen=True)

class OperationalLayer(BaseModel):
    id: str
    title: str = ""
    url: Optional[str] = None

    model_config = ConfigDict(extra="allow")

class WebMap(BaseModel):
    operationalLayers: List[OperationalLayer] = Field(default_factory=list)

    model_config = ConfigDict(extra="allow")

class MetadataDocument(BaseModel):
    name: str
    url: str

class LayerMetadataEntry(BaseModel):
    id: str
    title: str
    url: Optional[str] = None
    documents: Optional[List[MetadataDocument]] = None
    error: Optional[str] = None

class MetadataResponse(BaseModel):
    url: str
    baseUrl: str
    layerId: Optional[int] = None
    documents: Optional[Dict[str, Any]] = None

class WebMapMetadataResponse(BaseModel):
    itemId: str
    layers: List[LayerMetadataEntry]

class ErrorResponse(BaseModel):
    error: str
    detail: Optional[str] = None
    request_id: Optional[str] = None

class HealthResponse(BaseModel):
    status: str
    timestamp: str
    version: Optional[str] = None
