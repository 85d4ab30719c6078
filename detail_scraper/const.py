"""
Constants used across the detail scraper
"""

# Claiming
DEFAULT_BATCH_SIZE = 5  # Games claimed per batch by a worker
BATCH_PAUSE_SECONDS = 1.0  # Pause between batches

# Politeness delay between detail page requests (seconds)
DETAIL_MIN_DELAY = 2.0
DETAIL_MAX_DELAY = 3.0

# Parallel runner bounds
DEFAULT_WORKERS = 5
MIN_WORKERS = 1
MAX_WORKERS = 20

# Retry backoff for items that failed or came back incomplete
BACKOFF_BASE_SECONDS = 60
BACKOFF_MAX_SECONDS = 6 * 60 * 60

# detail_scrape_status values
STATUS_COMPLETED = "completed"
STATUS_INCOMPLETE = "incomplete"
STATUS_FAILED = "failed"
