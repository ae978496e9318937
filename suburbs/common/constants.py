"""Application constants."""

USER_AGENT = "suburb-boundaries/0.3 (+prospecting-crm; contact: configured-email)"

OVERPASS_ENDPOINTS = (
    "https://overpass-api.de/api/interpreter",
    "https://overpass.kumi.systems/api/interpreter",
    "https://maps.mail.ru/osm/tools/overpass/api/interpreter",
)
QUERY_TIMEOUT_SECONDS = 30
SUBURB_ADMIN_LEVELS = ("9", "10")
REGION_ADMIN_LEVEL = "4"
DEFAULT_REGION = "New South Wales"

CACHE_TTL_SECONDS = 5 * 60
CACHE_KEY_PRECISION = 3
CACHE_MAX_ENTRIES = 512
MIN_REQUEST_INTERVAL_SECONDS = 3.0
POINT_TOLERANCE_DEGREES = 1e-5

# 504 counts as a remote rate limit only on the by-name path.
AREA_RATE_LIMIT_STATUSES = frozenset({429})
NAME_RATE_LIMIT_STATUSES = frozenset({429, 504})

EXIT_SUCCESS = 0
EXIT_EMPTY = 10
EXIT_HARD_FAIL = 20
JSON_LOG_FIELDS = (
    "timestamp",
    "level",
    "event",
    "status",
    "endpoint",
    "attempt",
    "duration_ms",
    "cache",
    "query_kind",
    "cache_key",
    "result_count",
    "error_code",
    "message",
)
