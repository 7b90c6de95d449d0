"""jsondb configuration - constants only.

Values are read from the environment once at import time and clamped to
safe ranges. NO business logic lives here.
"""


import os

# =============================================================================
# INDEXER CONFIGURATION
# =============================================================================

def _get_int(env_var: str, default: int, max_value: int, min_value: int = 1) -> int:
    """Get a bounded integer from environment or use default."""
    try:
        value = int(os.environ.get(env_var, default))
    except (ValueError, TypeError):
        return default
    if value < min_value:
        return default
    return min(value, max_value)


# Maximum nesting depth accepted by the path indexer.
# Deeper documents fail with DepthExceededError instead of being indexed.
# The json encoder and decoder recurse once per level, so the cap stays well
# inside the interpreter recursion limit.
MAX_DEPTH_CAP = 512
MAX_SCAN_DEPTH = _get_int('JSONDB_MAX_DEPTH', 128, MAX_DEPTH_CAP)


# =============================================================================
# DATABASE CONFIGURATION
# =============================================================================

# Rows per executemany() call when appending index entries
MAX_BATCH_SIZE = 5000  # Hard cap
DEFAULT_BATCH_SIZE = _get_int('JSONDB_DB_BATCH_SIZE', 200, MAX_BATCH_SIZE)

# Seconds a connection waits on a locked database before failing
DB_TIMEOUT = _get_int('JSONDB_DB_TIMEOUT', 60, 3600)


# =============================================================================
# QUERY CONFIGURATION
# =============================================================================

# Every ephemeral pivot view name starts with this prefix
VIEW_PREFIX = "jsondb_view_"

# Pattern every generated SQL identifier must match in full
IDENTIFIER_PATTERN = r"[A-Za-z_][A-Za-z0-9_]*"
