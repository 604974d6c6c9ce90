from __future__ import annotations

APP_VERSION = "0.3.0"

# Owner bypasses every permission check.
DEFAULT_OWNER_ID = 407991620164911118

DEFAULT_COMMAND_PREFIX = "::ECHO_"
DEFAULT_IGNORE_MARKERS = ("/unecho",)

# Corpus bounds
CORPUS_CAP = 2222
EVICT_FLOOR = 1000
MAX_CONTENT_BYTES = 2000
MAX_CONTENT_WORDS = 30

# Proc defaults for a freshly seen scope
DEFAULT_MIN_PROC = 1
DEFAULT_MAX_PROC = 4
DEFAULT_PROC_OUT_OF = 18

# Selection
CONTINUE_RATIO = (1, 4)
CONTINUATION_MARKER = " ..."
MAX_BURST = 50
PER_WORD_DELAY_SECONDS = 0.1
REACT_START_RATIO = (1, 8)
REACT_CONTINUE_RATIO = (1, 4)
MAX_REACTIONS = 10

# Snapshots
SNAPSHOT_INTERVAL_SECONDS = 12 * 3600
DEFAULT_BACKUP_CHANNEL_ID = 970308154401378356
BACKUP_FILENAME = "backup.cbor"

DISCORD_MAX_MESSAGE_LEN = 1900
