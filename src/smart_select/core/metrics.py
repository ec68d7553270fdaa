from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total number of HTTP requests",
    ["method", "path", "status_code"],
)

EXTERNAL_API_COUNT = Counter(
    "external_api_requests_total",
    "Total number of external API requests",
    ["source", "status"],
)

EXTERNAL_API_DURATION = Histogram(
    "external_api_duration_seconds",
    "Duration of external API requests in seconds",
    ["source"],
)

CACHE_HITS = Counter("cache_hits_total", "Total number of cache hits", ["namespace"])
CACHE_MISSES = Counter("cache_misses_total", "Total number of cache misses", ["namespace"])

SUBSTITUTIONS = Counter(
    "product_substitutions_total",
    "Total number of backup products substituted for a primary",
    ["reason"],
)

ALL_PRODUCTS_UNAVAILABLE = Counter(
    "all_products_unavailable_total",
    "Total number of selections where no product in any group was available",
)

UPSTREAM_UNAUTHORIZED = Counter(
    "upstream_unauthorized_total",
    "Total number of upstream calls rejected as unauthorized",
)
