"""Runtime configuration, read from the environment (and an optional ``.env``)."""

import os

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.getenv("SURVEY_LOG_LEVEL", "INFO")

# Geonorge Høydedata terrain service
ELEVATION_API_URL = os.getenv("ELEVATION_API_URL", "https://ws.geonorge.no/hoydedata/v1")
# Local DEM GeoTIFF; when set it replaces the web service
ELEVATION_RASTER = os.getenv("ELEVATION_RASTER") or None

DEFAULT_EPSG = int(os.getenv("DEFAULT_EPSG", "25832"))

# Terrain fetching
PROFILE_SPACING_M = float(os.getenv("PROFILE_SPACING_M", "1.0"))
MAX_POINTS_PER_REQUEST = int(os.getenv("MAX_POINTS_PER_REQUEST", "50"))
FETCH_YIELD_S = float(os.getenv("FETCH_YIELD_S", "0.05"))
CACHE_DECIMALS = 2

# Survey attribute keys
TYPE_CODE_FIELD = "S_FCODE"
DIAMETER_FIELDS = ("Bredde (diameter)", "Bredde", "Dimensjon")

# Lid matching (metres)
LID_CODE = "LOK"
REQUIRES_LID = frozenset({"KUM", "SLU", "SLS", "SAN"})
BASE_TOLERANCE_M = 1.0
MIN_RADIUS_M = 0.3
MAX_RADIUS_M = 1.5

# Incline analysis of gravity pipes
GRAVITY_CODES = ("SP", "OV", "AF")
PRESSURE_MARKERS = ("TRYKK", "PUMP", "SPP", "SPTR")
BACKFALL_TOLERANCE_M = 0.01

# Spatial outliers: z-score of the distance to the dataset centroid
OUTLIER_Z_THRESHOLD = float(os.getenv("OUTLIER_Z_THRESHOLD", "3.0"))
