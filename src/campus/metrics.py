"""
Prometheus metrics for monitoring API performance and behavior.

Only route handlers touch these; the heatmap and proximity code stays free
of process-wide state.
"""
from prometheus_client import Counter, Histogram

# Request metrics
heatmap_requests_total = Counter(
    'heatmap_requests_total',
    'Total number of heatmap requests',
    ['status', 'data_source']
)

checkin_requests_total = Counter(
    'checkin_requests_total',
    'Total number of check-in attempts',
    ['status']
)

nearby_chat_requests_total = Counter(
    'nearby_chat_requests_total',
    'Total number of nearby chat room lookups',
    ['status']
)

# Latency metrics
request_duration_seconds = Histogram(
    'request_duration_seconds',
    'Request latency in seconds',
    ['endpoint']
)

# Business metrics
heatmap_cells_returned = Histogram(
    'heatmap_cells_returned',
    'Number of cells returned per heatmap response',
    buckets=(1, 5, 10, 25, 50, 100, 250, 500)
)

achievements_unlocked_total = Counter(
    'achievements_unlocked_total',
    'Achievements unlocked by check-ins',
    ['achievement']
)

# Redis metrics
redis_operations_total = Counter(
    'redis_operations_total',
    'Total Redis operations',
    ['operation', 'status']
)
