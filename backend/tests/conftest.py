import orjson
import pytest

SERVICE_URL = "https://data.example.gov/arcgis/rest/services/Airports/AirportFacilities/MapServer"
OTHER_SERVICE_URL = "https://gis.example.org/arcgis/rest/services/Transport/Roads/MapServer"
LAYER_SOURCES_URL = f"{SERVICE_URL}/exts/LayerMetadata/layerSources"

SERVICE_DESCRIPTOR = {
    'currentVersion': 10.81,
    'serviceDescription': 'Airport facilities',
    'capabilities': 'Map,Query,Data',
    'supportedExtensions': 'KmlServer, LayerMetadata',
    'supportedImageFormatTypes': 'PNG32,PNG24,PNG,JPG',
    'documentInfo': {'Title': 'Airports', 'Keywords': 'airport,runway, apron'},
    'layers': [
        {'id': 0, 'name': 'Control points'},
        {'id': 1, 'name': 'Control points (labels)'},
        {'id': 2, 'name': 'Runway centerline'},
    ],
}

NO_EXTENSION_DESCRIPTOR = {
    'currentVersion': 10.81,
    'capabilities': 'Map,Query',
    'supportedExtensions': 'KmlServer',
}

LAYER_SOURCES = {
    'Airports.DBO.AirportControlPoint': [0, 1],
    'Airports.DBO.RunwayCenterline': [2],
}

HTML_ERROR_PAGE = "<html><body><h1>Error 500</h1></body></html>"


class MockResponse:

    def __init__(self, text, status_code=200):
        self.text = text
        self.status_code = status_code


class FakeArcGIS:
    """Canned answers for GET requests, keyed by URL without query string."""

    def __init__(self):
        self.routes = {}
        self.requests = []

    def add_json(self, url, payload, status_code=200):
        return self.add(url, MockResponse(orjson.dumps(payload).decode(), status_code))

    def add_text(self, url, text, status_code=200):
        return self.add(url, MockResponse(text, status_code))

    def add_error(self, url, error):
        return self.add(url, error)

    def add(self, url, answer):
        self.routes.setdefault(url, []).append(answer)
        return self

    def answer(self, url):
        answers = self.routes.get(url)
        if not answers:
            return MockResponse("<html><body>Not Found</body></html>", 404)
        answer = answers.pop(0) if len(answers) > 1 else answers[0]
        if isinstance(answer, Exception):
            raise answer
        return answer

    def urls(self):
        return [url for url, _ in self.requests]


@pytest.fixture
def fake_arcgis(monkeypatch):
    arcgis = FakeArcGIS()

    class MockAsyncClient:
        def __init__(self, *args, **kwargs):
            pass

        async def get(self, url, params=None):
            arcgis.requests.append((url, params))
            return arcgis.answer(url)

        async def aclose(self):
            return None

    monkeypatch.setattr("metalist.client.httpx.AsyncClient", MockAsyncClient)
    return arcgis


@pytest.fixture
def metadata_service(fake_arcgis):
    """A map service with the LayerMetadata extension enabled."""
    fake_arcgis.add_json(SERVICE_URL, SERVICE_DESCRIPTOR)
    fake_arcgis.add_json(LAYER_SOURCES_URL, LAYER_SOURCES)
    return fake_arcgis
