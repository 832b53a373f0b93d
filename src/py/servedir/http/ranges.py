import secrets
from typing import Iterator, NamedTuple, Protocol

# --
# == Byte ranges
#
# Parses `Range: bytes=…` request headers and produces the matching
# `206 Partial Content` bodies, including `multipart/byteranges` when more
# than one range is requested.
#
# SEE: https://tools.ietf.org/html/rfc7233

RANGE_UNIT: str = "bytes="

# Size of the chunks read from the content when streaming
CHUNK_SIZE: int = 64_000


class ReadSeeker(Protocol):
	"""Content that can be served: readable and seekable, like a binary file."""

	def read(self, size: int = -1, /) -> bytes: ...

	def seek(self, offset: int, whence: int = 0, /) -> int: ...


class RangeError(ValueError):
	"""The range header is malformed."""


class NoOverlapError(RangeError):
	"""None of the requested ranges overlap the content."""


class HTTPRange(NamedTuple):
	"""A range of `length` bytes starting at `start`."""

	start: int
	length: int

	def contentRange(self, size: int) -> str:
		return f"bytes {self.start}-{self.start + self.length - 1}/{size}"

	def headers(self, contentType: str, size: int) -> bytes:
		return (
			f"Content-Range: {self.contentRange(size)}\r\n"
			f"Content-Type: {contentType}\r\n"
			"\r\n"
		).encode("ascii")


def isDecimal(text: str) -> bool:
	return text.isascii() and text.isdigit()


def parseRange(header: str | None, size: int) -> list[HTTPRange] | None:
	"""Parses a `Range` header string as per RFC 7233. Returns `None` when
	there is no header, raises `NoOverlapError` when all the ranges fall
	outside of the content and `RangeError` when the header is malformed."""
	if not header:
		return None
	if not header.startswith(RANGE_UNIT):
		raise RangeError("invalid range")
	ranges: list[HTTPRange] = []
	no_overlap: bool = False
	for part in header[len(RANGE_UNIT) :].split(","):
		part = part.strip(" \t")
		if not part:
			continue
		start, sep, end = part.partition("-")
		if not sep:
			raise RangeError("invalid range")
		start, end = start.strip(" \t"), end.strip(" \t")
		if not start:
			# `-N` is the last N bytes
			if not isDecimal(end):
				raise RangeError("invalid range")
			n = min(int(end), size)
			ranges.append(HTTPRange(size - n, n))
		else:
			if not isDecimal(start):
				raise RangeError("invalid range")
			i = int(start)
			if i >= size:
				no_overlap = True
				continue
			if not end:
				# `N-` is everything from N
				ranges.append(HTTPRange(i, size - i))
			else:
				if not isDecimal(end) or i > int(end):
					raise RangeError("invalid range")
				j = min(int(end), size - 1)
				ranges.append(HTTPRange(i, j - i + 1))
	if no_overlap and not ranges:
		raise NoOverlapError("invalid range: failed to overlap")
	return ranges


def sumRangesSize(ranges: list[HTTPRange]) -> int:
	return sum(_.length for _ in ranges)


def multipartBoundary() -> str:
	return secrets.token_hex(30)


def multipartSize(
	ranges: list[HTTPRange], boundary: str, contentType: str, size: int
) -> int:
	"""Returns the number of bytes of the `multipart/byteranges` body produced
	by `iterMultipart` with the same arguments."""
	return sum(
		len(multipartDelimiter(boundary, i)) + len(_.headers(contentType, size)) + _.length
		for i, _ in enumerate(ranges)
	) + len(multipartClose(boundary))


def multipartDelimiter(boundary: str, index: int) -> bytes:
	prefix = "\r\n" if index else ""
	return f"{prefix}--{boundary}\r\n".encode("ascii")


def multipartClose(boundary: str) -> bytes:
	return f"\r\n--{boundary}--\r\n".encode("ascii")


def iterRange(content: ReadSeeker, start: int, length: int) -> Iterator[bytes]:
	"""Iterates on the `length` bytes starting at `start`, stops early when
	the content is shorter than expected."""
	content.seek(start)
	left = length
	while left > 0:
		chunk = content.read(min(CHUNK_SIZE, left))
		if not chunk:
			break
		left -= len(chunk)
		yield chunk


def iterMultipart(
	content: ReadSeeker,
	ranges: list[HTTPRange],
	boundary: str,
	contentType: str,
	size: int,
) -> Iterator[bytes]:
	for i, r in enumerate(ranges):
		yield multipartDelimiter(boundary, i)
		yield r.headers(contentType, size)
		yield from iterRange(content, r.start, r.length)
	yield multipartClose(boundary)


# EOF
