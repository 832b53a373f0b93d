from typing import Iterable
from urllib.parse import quote

from ..exclusions import TExclude
from ..fs import File, FileInfo
from ..http.conditions import (
	Precondition,
	checkIfModifiedSince,
	isZeroTime,
	notModified,
)
from ..http.dates import formatHTTPDate
from ..http.model import HTTPRequest, HTTPResponse
from ..utils.logging import error

# --
# == Directory listings
#
# Directories without an index file are rendered as a bare HTML listing,
# one link per entry:
#
# ```
# <pre>
# <a href="docs/">docs/</a>
# <a href="a&amp;b.txt">a&amp;b.txt</a>
# </pre>
# ```

HTML_ESCAPED = str.maketrans(
	{
		"&": "&amp;",
		"<": "&lt;",
		">": "&gt;",
		# Numeric references, as `&apos;` is not defined before HTML5
		'"': "&#34;",
		"'": "&#39;",
	}
)

# Reserved characters that keep their meaning in a URL path, everything that
# is neither one of these nor unreserved is percent-encoded. Notably `?` and
# `#` are encoded, as they would otherwise start the query or fragment.
PATH_SAFE: str = "$&+,/:;=@"

# Names are OS strings, which may carry undecodable bytes as surrogates.
NAME_ENCODING: tuple[str, str] = ("utf8", "surrogateescape")

# The body of the `500` sent when a directory can't be read, the reason is
# only logged.
LISTING_ERROR: str = "Error reading directory"


def escape(text: str) -> str:
	return text.translate(HTML_ESCAPED)


def listingHref(name: str) -> str:
	"""Returns the relative URL for the given entry name."""
	href = quote(name.encode(*NAME_ENCODING), safe=PATH_SAFE)
	# A colon in the first segment would make the name look like a scheme.
	if ":" in href.split("/", 1)[0]:
		href = f"./{href}"
	return href


def listingEntries(
	entries: Iterable[FileInfo], exclude: TExclude | None = None
) -> list[FileInfo]:
	"""Returns the visible entries sorted by name, byte-wise."""
	return sorted(
		(_ for _ in entries if not (exclude and exclude(_.name))),
		key=lambda _: _.name.encode(*NAME_ENCODING),
	)


def renderListing(entries: Iterable[FileInfo]) -> str:
	lines: list[str] = ["<pre>\n"]
	for entry in entries:
		name = f"{entry.name}/" if entry.isDir else entry.name
		lines.append(f'<a href="{listingHref(name)}">{escape(name)}</a>\n')
	lines.append("</pre>\n")
	return "".join(lines)


def serveListing(
	request: HTTPRequest,
	directory: File,
	info: FileInfo,
	exclude: TExclude | None = None,
) -> HTTPResponse:
	"""Responds with the listing of the given open `directory`, or with
	a `304 Not Modified` when the client's copy is still fresh."""
	modtime = info.modtime
	if (
		checkIfModifiedSince(
			request.method, request.header("If-Modified-Since"), modtime
		)
		is Precondition.Satisfied
	):
		return notModified(request, {})
	headers: dict[str, str] = {}
	if modtime is not None and not isZeroTime(modtime):
		headers["Last-Modified"] = formatHTTPDate(modtime)
	try:
		entries = directory.readdir()
	except OSError as e:
		error(
			"Error reading directory",
			"DIRLIST",
			Path=request.path,
			Reason=e.strerror or e.__class__.__name__,
		)
		return request.fail(LISTING_ERROR)
	return request.respondHTML(
		renderListing(listingEntries(entries, exclude)).encode(*NAME_ENCODING),
		headers=headers,
	)


# EOF
