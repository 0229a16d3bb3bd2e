"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
Business rules themselves always come from a pinned rules snapshot.
"""

EARTH_RADIUS_METERS = 6371000.0

DEFAULT_GEOFENCE_RADIUS_METERS = 100
DEFAULT_BATCH_WORKERS = 4

DEFAULT_SYNC_MAX_ATTEMPTS = 5
DEFAULT_SYNC_BASE_DELAY_SECONDS = 1.0
DEFAULT_SYNC_MAX_DELAY_SECONDS = 60.0

MINUTES_PER_HOUR = 60
SECONDS_PER_MINUTE = 60
