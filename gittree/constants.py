"""
Centralized constants for gittree.

Hardcoded strings and magic numbers used across the codebase.
"""

APP_NAME = "gittree"

# Settings location (relative to the user's home directory)
SETTINGS_DIR = ".config/gittree"
SETTINGS_FILE = "settings.json"

# Abbreviated hash length
SHORT_ID_LENGTH = 7

# Navigation defaults
DEFAULT_READ_AHEAD = 50
DEFAULT_BATCH_SIZE = 200

# Metadata column widths
AUTHOR_COLUMN_WIDTH = 16

# Date format value that selects "3 days ago"-style dates
RELATIVE_DATE_FORMAT = "relative"

# Frame rate of the inbox drain timer
FRAMES_PER_SECOND = 30

# Commits a single pull may walk before returning what it found so far
DEFAULT_SCAN_BUDGET = 2000

# Consecutive commits older than --since before the walk stops (as git log does)
SINCE_SLOP = 5
