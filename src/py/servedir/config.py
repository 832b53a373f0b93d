from os import getenv

from .exclusions import DEFAULT_PATTERNS

PORT: int = int(getenv("PORT", 8000))

# When serving a local directory, we want it to be accessible from everywhere
HOST: str = getenv("HOST", "0.0.0.0")  # nosec: B104

# The directory that is served by default
ROOT: str = getenv("SERVEDIR_ROOT", ".")

# Comma-separated regular expressions matched against path segments
EXCLUDE: str = getenv("SERVEDIR_EXCLUDE", ",".join(DEFAULT_PATTERNS))

# The file served in place of a directory listing
INDEX: str = getenv("SERVEDIR_INDEX", "index.html")

LOG_REQUESTS: bool = getenv("SERVEDIR_LOG_REQUESTS", "1") == "1"

# EOF
