import os

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
FRONTEND_ORIGIN = os.getenv("FRONTEND_ORIGIN", "http://localhost:3000")
ARCGIS_TIMEOUT = int(os.getenv("ARCGIS_TIMEOUT_S", "20"))
PORTAL_URL = os.getenv("PORTAL_URL", "https://www.arcgis.com/sharing/rest")
WEBMAP_MAX_ATTEMPTS = int(os.getenv("WEBMAP_MAX_ATTEMPTS", "3"))
