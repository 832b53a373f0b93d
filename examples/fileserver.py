"""
Static File Server Example

This demonstrates serving a directory with the `FileService`:
- Directory listings (`.git`, `.vscode` and `.idea` are hidden)
- `index.html` files served in place of listings
- Conditional requests (`If-Modified-Since`) and byte ranges

Usage:
    python fileserver.py [DIRECTORY]

Test with:
    curl -i http://localhost:8000/            # List the directory
    curl -i http://localhost:8000/README.md   # Serve a specific file
    curl -i http://localhost:8000/src         # Redirected to src/
"""

import sys

from servedir import run
from servedir.exclusions import DEFAULT_PATTERNS, Exclusions
from servedir.services.files import FileService
from servedir.utils.logging import info


class StaticFileServer(FileService):
	"""A file server that also hides Python caches."""

	def __init__(self, root: str):
		super().__init__(
			root, exclude=Exclusions(*DEFAULT_PATTERNS, r"^__pycache__$")
		)
		info("Static file server initialized", Root=root)


if __name__ == "__main__":
	root = sys.argv[1] if len(sys.argv) > 1 else "."
	info("Access examples: http://localhost:8000/README.md")
	run(StaticFileServer(root))

# EOF
