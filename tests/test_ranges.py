import io

import pytest

from servedir.http.ranges import (
	HTTPRange,
	NoOverlapError,
	RangeError,
	iterMultipart,
	iterRange,
	multipartSize,
	parseRange,
	sumRangesSize,
)


def test_no_header():
	assert parseRange(None, 10) is None
	assert parseRange("", 10) is None


def test_single_ranges():
	assert parseRange("bytes=0-4", 10) == [HTTPRange(0, 5)]
	assert parseRange("bytes=5-", 10) == [HTTPRange(5, 5)]
	assert parseRange("bytes=-3", 10) == [HTTPRange(7, 3)]
	# Suffixes and ends are clamped to the content
	assert parseRange("bytes=-30", 10) == [HTTPRange(0, 10)]
	assert parseRange("bytes=8-20", 10) == [HTTPRange(8, 2)]


def test_multiple_ranges():
	ranges = parseRange("bytes=0-1, 4-5,", 10)
	assert ranges == [HTTPRange(0, 2), HTTPRange(4, 2)]
	assert ranges is not None and sumRangesSize(ranges) == 4
	# Ranges past the end are dropped when others overlap
	assert parseRange("bytes=0-1,20-30", 10) == [HTTPRange(0, 2)]


def test_malformed():
	for header in ("items=0-1", "bytes=5-2", "bytes=a-b", "bytes=1", "bytes=-x"):
		with pytest.raises(RangeError):
			parseRange(header, 10)


def test_no_overlap():
	with pytest.raises(NoOverlapError):
		parseRange("bytes=20-30", 10)
	with pytest.raises(NoOverlapError):
		parseRange("bytes=0-1", 0)


def test_content_range():
	assert HTTPRange(0, 5).contentRange(10) == "bytes 0-4/10"
	assert HTTPRange(9, 1).contentRange(10) == "bytes 9-9/10"


def test_iter_range():
	data = io.BytesIO(b"0123456789")
	assert b"".join(iterRange(data, 2, 3)) == b"234"
	# A content shorter than expected ends the iteration
	assert b"".join(iterRange(data, 8, 10)) == b"89"


def test_multipart_size():
	content = b"0123456789"
	ranges = [HTTPRange(0, 2), HTTPRange(5, 3)]
	body = b"".join(
		iterMultipart(io.BytesIO(content), ranges, "BOUNDARY", "text/plain", 10)
	)
	assert len(body) == multipartSize(ranges, "BOUNDARY", "text/plain", 10)
	assert body.startswith(b"--BOUNDARY\r\nContent-Range: bytes 0-1/10\r\n")
	assert b"\r\n\r\n567\r\n--BOUNDARY--\r\n" in body


# EOF
