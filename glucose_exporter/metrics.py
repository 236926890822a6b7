from prometheus_client import Counter, Histogram

# Histogram for API call latency (seconds)
librelink_api_call_latency_seconds = Histogram(
    'librelink_api_call_latency_seconds',
    'Latency of LibreLinkUp API calls in seconds',
    ['method', 'endpoint']
)

# Counter for total API calls, labeled by method and status
# status: success, error
# endpoint: templated path, e.g. llu/connections/{connection_id}/graph
librelink_api_call_total = Counter(
    'librelink_api_call_total',
    'Total LibreLinkUp API calls',
    ['method', 'endpoint', 'status']
)

# Counter for region redirects followed
librelink_region_redirects_total = Counter(
    'librelink_region_redirects_total',
    'Total LibreLinkUp region redirects followed',
    ['region']
)

# Counter for scrapes of the glucose collector
# outcome: success, auth_failed, connections_failed, deadline_exceeded
glucose_scrapes_total = Counter(
    'glucose_exporter_scrapes_total',
    'Total scrapes of the glucose collector',
    ['outcome']
)

__all__ = [
    'librelink_api_call_latency_seconds',
    'librelink_api_call_total',
    'librelink_region_redirects_total',
    'glucose_scrapes_total',
]
