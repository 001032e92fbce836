"""
Default values and environment variables for hydropad configuration.

This module centralizes all default values, environment variable names,
and upstream service endpoints used throughout hydropad.
"""

# Environment variable names
ENV_CONFIG_PATH = "HYDROPAD_CONFIG"
ENV_CACHE_DB = "HYDROPAD_CACHE_DB"
ENV_PROXY_BASE = "HYDROPAD_PROXY_BASE"
ENV_TIMEOUT = "HYDROPAD_TIMEOUT"
ENV_LOG_FILE = "HYDROPAD_LOG_FILE"
ENV_CORS_ORIGINS = "HYDROPAD_CORS_ORIGINS"

# Resilient fetch
DEFAULT_TIMEOUT_S = 60.0
DEFAULT_RETRIES = 2
DEFAULT_BACKOFF_S = 0.3
DEFAULT_PROXY_BASE = "https://api.allorigins.win/get"
DEFAULT_USER_AGENT = "hydropad/0.1 (+https://github.com/hydropad/hydropad)"
PREVIEW_LENGTH = 280

# Upstream services
NOAA_HDSC_URL = "https://hdsc.nws.noaa.gov/cgi-bin/hdsc/new/fe_text_read.p"
STREAMSTATS_WATERSHED_URL = "https://streamstats.usgs.gov/streamstatsservices/watershed.geojson"
NLDI_BASE_URL = "https://api.water.usgs.gov/nldi/linked-data"
NLDI_SPLIT_CATCHMENT_URL = "https://api.water.usgs.gov/nldi/pygeoapi/processes/nldi-splitcatchment/execution"
HYDROSHARE_WFS_URL = "https://geoserver.hydroshare.org/geoserver/NHDPlus_HR/wfs"
HYDROGRAPHY_WFS_URL = "https://labs.waterdata.usgs.gov/geoserver/wmadata/ows"
NLCD_WMS_URL = "https://www.mrlc.gov/geoserver/mrlc_display/NLCD_2021_Land_Cover_L48/wms"
REVERSE_GEOCODE_URL = "https://api.bigdatacloud.net/data/reverse-geocode-client"

# Flowline snapping
DEFAULT_SEARCH_RADIUS_M = 1000.0
DEFAULT_MAX_SNAP_DISTANCE_M = 500.0

# Delineation cascade
DEFAULT_SYNTHETIC_HALF_WIDTH_M = 750.0
DEFAULT_TIER_TIMEOUT_S = 10.0

# Rainfall cache
DEFAULT_RAINFALL_NAMESPACE = "rainfall-cache"
DEFAULT_CACHE_MAX_ENTRIES = 32
DEFAULT_CACHE_TTL_DAYS = 30
DEFAULT_CACHE_DB = "./cache/hydropad.db"

# Land-cover sampling
DEFAULT_SAMPLE_COUNT = 20
DEFAULT_BATCH_SIZE = 5
DEFAULT_HSG = "C"
