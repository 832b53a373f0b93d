import math
from enum import Enum
from typing import NamedTuple

from .dates import parseHTTPDate
from .model import HTTPRequest, HTTPResponse, headername

# --
# == Conditional requests
#
# Implements the evaluation of the precondition headers of RFC 7232
# (`If-Match`, `If-None-Match`, `If-Modified-Since`, `If-Unmodified-Since` and
# `If-Range`). The individual checks return `True` when the condition holds,
# `False` when it does not and `None` when the request has no such condition.
#
# SEE: https://tools.ietf.org/html/rfc7232


class Precondition(Enum):
	"""Result of evaluating `If-Modified-Since` against a modification time."""

	# The request has no (usable) precondition
	Missing = 0
	# The content is unchanged, a `304 Not Modified` can be sent
	Satisfied = 1
	# The content changed, the full response must be sent
	Unsatisfied = 2


# Modification times are UNIX timestamps, a time of `0` (or no time at all)
# means the modification time is not known.
UNIX_EPOCH: float = 0.0

# Methods to which `If-Modified-Since`, `If-None-Match` (as a 304) and
# `If-Range` apply.
SAFE_METHODS: frozenset[str] = frozenset(("GET", "HEAD"))

# Representation headers that a 304 response should not carry.
NOT_MODIFIED_STRIPPED: tuple[str, ...] = ("Content-Type", "Content-Length")


def isZeroTime(modtime: float | None) -> bool:
	"""Tells if the modification time is obviously unspecified."""
	return modtime is None or modtime == UNIX_EPOCH


def checkIfModifiedSince(
	method: str, header: str | None, modtime: float | None
) -> Precondition:
	if method not in SAFE_METHODS:
		return Precondition.Missing
	if not header or modtime is None or isZeroTime(modtime):
		return Precondition.Missing
	t = parseHTTPDate(header)
	if t is None:
		return Precondition.Missing
	# HTTP dates have a one second resolution
	return (
		Precondition.Satisfied
		if math.floor(modtime) <= t
		else Precondition.Unsatisfied
	)


# -----------------------------------------------------------------------------
#
# ENTITY TAGS
#
# -----------------------------------------------------------------------------


def scanETag(text: str) -> tuple[str, str]:
	"""Scans the first entity tag (strong or weak) from the given text,
	returning the tag and the remaining text. An empty tag means that
	no valid entity tag was found."""
	s = text.strip(" \t")
	start = 2 if s.startswith("W/") else 0
	if len(s) - start < 2 or s[start] != '"':
		return "", ""
	for i in range(start + 1, len(s)):
		c = s[i]
		o = ord(c)
		if o == 0x21 or 0x23 <= o <= 0x7E or o >= 0x80:
			continue
		elif c == '"':
			return s[: i + 1], s[i + 1 :]
		else:
			return "", ""
	return "", ""


def etagStrongMatch(a: str, b: str | None) -> bool:
	return bool(b) and a == b and a[0] == '"'


def etagWeakMatch(a: str, b: str | None) -> bool:
	return b is not None and a.removeprefix("W/") == b.removeprefix("W/")


def iterETags(header: str) -> list[str]:
	"""Returns the list of entity tags in a comma-separated header, `*` being
	returned as-is."""
	res: list[str] = []
	rest = header
	while True:
		rest = rest.strip(" \t")
		if not rest:
			break
		elif rest[0] == ",":
			rest = rest[1:]
		elif rest[0] == "*":
			res.append("*")
			rest = rest[1:]
		else:
			etag, rest = scanETag(rest)
			if not etag:
				break
			res.append(etag)
	return res


# -----------------------------------------------------------------------------
#
# CHECKS
#
# -----------------------------------------------------------------------------


def checkIfMatch(request: HTTPRequest, etag: str | None) -> bool | None:
	header = request.header("If-Match")
	if not header:
		return None
	for _ in iterETags(header):
		if _ == "*" or etagStrongMatch(_, etag):
			return True
	return False


def checkIfUnmodifiedSince(request: HTTPRequest, modtime: float | None) -> bool | None:
	header = request.header("If-Unmodified-Since")
	if not header or modtime is None or isZeroTime(modtime):
		return None
	t = parseHTTPDate(header)
	if t is None:
		return None
	return math.floor(modtime) <= t


def checkIfNoneMatch(request: HTTPRequest, etag: str | None) -> bool | None:
	"""Returns `False` when one of the given tags matches, meaning that the
	client already has the representation."""
	header = request.header("If-None-Match")
	if not header:
		return None
	for _ in iterETags(header):
		if _ == "*" or etagWeakMatch(_, etag):
			return False
	return True


def checkIfRange(
	request: HTTPRequest, modtime: float | None, etag: str | None
) -> bool | None:
	if request.method not in SAFE_METHODS:
		return None
	header = request.header("If-Range")
	if not header:
		return None
	tag, _ = scanETag(header)
	if tag:
		return etagStrongMatch(tag, etag)
	# Not an entity tag, so a date
	if modtime is None or isZeroTime(modtime):
		return False
	t = parseHTTPDate(header)
	if t is None:
		return False
	return t == math.floor(modtime)


# -----------------------------------------------------------------------------
#
# RESPONSES
#
# -----------------------------------------------------------------------------


class Preconditions(NamedTuple):
	"""The outcome of `checkPreconditions`: either a response that ends the
	request, or the `Range` header that should be honoured (if any)."""

	response: HTTPResponse | None = None
	range: str | None = None


def notModified(request: HTTPRequest, headers: dict[str, str]) -> HTTPResponse:
	"""Creates a `304 Not Modified` response from the headers that the full
	response would have had."""
	# SEE: https://tools.ietf.org/html/rfc7232#section-4.1
	h = {headername(k): v for k, v in headers.items()}
	for _ in NOT_MODIFIED_STRIPPED:
		h.pop(_, None)
	if h.get("Etag"):
		h.pop("Last-Modified", None)
	return request.notModified(h)


def checkPreconditions(
	request: HTTPRequest,
	modtime: float | None,
	etag: str | None = None,
	headers: dict[str, str] | None = None,
) -> Preconditions:
	"""Evaluates the conditional headers in the order given by RFC 7232
	section 6. The `headers` are those of the would-be response, used to
	build a `304`."""
	ch = checkIfMatch(request, etag)
	if ch is None:
		ch = checkIfUnmodifiedSince(request, modtime)
	if ch is False:
		return Preconditions(request.empty(status=412))
	match checkIfNoneMatch(request, etag):
		case False:
			if request.method in SAFE_METHODS:
				return Preconditions(notModified(request, headers or {}))
			else:
				return Preconditions(request.empty(status=412))
		case None:
			if (
				checkIfModifiedSince(
					request.method, request.header("If-Modified-Since"), modtime
				)
				is Precondition.Satisfied
			):
				return Preconditions(notModified(request, headers or {}))
	range_header = request.header("Range")
	if range_header and checkIfRange(request, modtime, etag) is False:
		range_header = None
	return Preconditions(None, range_header or None)


# EOF
