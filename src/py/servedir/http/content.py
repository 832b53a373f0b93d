import io
from typing import Iterator

from ..utils.files import SNIFF_LENGTH, sniff
from ..utils.files import contentType as getContentType
from .conditions import checkPreconditions, isZeroTime
from .dates import formatHTTPDate
from .model import HTTPRequest, HTTPResponse
from .ranges import (
	HTTPRange,
	NoOverlapError,
	RangeError,
	ReadSeeker,
	iterMultipart,
	iterRange,
	multipartBoundary,
	multipartSize,
	parseRange,
	sumRangesSize,
)

# --
# == Content delivery
#
# `serveContent` is the generic primitive used to send a readable and
# seekable content: it evaluates the conditional headers, determines the
# content type, honours byte ranges and streams the body. It knows nothing
# about files, directories or paths: the caller resolves those.


def serveContent(
	request: HTTPRequest,
	name: str,
	modtime: float | None,
	content: ReadSeeker,
	*,
	size: int | None = None,
	etag: str | None = None,
	contentType: str | None = None,
	headers: dict[str, str] | None = None,
) -> HTTPResponse:
	"""Creates the response for the given `content`. The `name` is only used
	to guess the content type from its extension, when it can't be guessed
	the first bytes of the content are sniffed.

	The returned response may stream from `content`, which must then stay
	open until the response has been written."""
	h: dict[str, str] = dict(headers) if headers else {}
	if modtime is not None and not isZeroTime(modtime):
		h["Last-Modified"] = formatHTTPDate(modtime)
	if etag:
		h["ETag"] = etag

	done, range_header = checkPreconditions(request, modtime, etag, h)
	if done:
		return done

	# The extension decides the type, unknown extensions are sniffed
	content_type = contentType or getContentType(name)
	try:
		if not content_type:
			content_type = sniff(content.read(SNIFF_LENGTH))
			content.seek(0, io.SEEK_SET)
		if size is None:
			size = content.seek(0, io.SEEK_END)
			content.seek(0, io.SEEK_SET)
	except OSError:
		return request.fail("seeker can't seek")
	if size < 0:
		return request.fail("negative content size computed")
	h["Content-Type"] = content_type

	ranges: list[HTTPRange] | None = None
	try:
		ranges = parseRange(range_header, size)
	except NoOverlapError as e:
		if size != 0:
			return request.error(416, str(e), headers={"Content-Range": f"bytes */{size}"})
		# An empty file is sent whole, whatever range was asked for
		ranges = None
	except RangeError as e:
		return request.error(416, str(e))

	if ranges and sumRangesSize(ranges) > size:
		# Overlapping ranges sending more than the content are ignored
		ranges = None

	status: int = 200
	send_size: int = size
	body: Iterator[bytes]
	if not ranges:
		body = iterRange(content, 0, size)
	elif len(ranges) == 1:
		r = ranges[0]
		status = 206
		send_size = r.length
		h["Content-Range"] = r.contentRange(size)
		body = iterRange(content, r.start, r.length)
	else:
		boundary = multipartBoundary()
		status = 206
		send_size = multipartSize(ranges, boundary, content_type, size)
		h["Content-Type"] = f"multipart/byteranges; boundary={boundary}"
		body = iterMultipart(content, ranges, boundary, content_type, size)

	h["Accept-Ranges"] = "bytes"
	h["Content-Length"] = str(send_size)
	return request.respond(
		None if request.method == "HEAD" else body,
		status=status,
		headers=h,
	)


# EOF
