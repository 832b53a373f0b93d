from servedir.http.conditions import (
	Precondition,
	checkIfModifiedSince,
	checkIfNoneMatch,
	checkIfRange,
	checkPreconditions,
	isZeroTime,
	iterETags,
	notModified,
	scanETag,
)
from servedir.http.dates import formatHTTPDate
from servedir.http.model import HTTPRequest

MODTIME: float = 784111777.0
DATE: str = formatHTTPDate(MODTIME)


def request(method: str = "GET", **headers: str) -> HTTPRequest:
	return HTTPRequest(
		method, "/", headers={k.replace("_", "-"): v for k, v in headers.items()}
	)


# -----------------------------------------------------------------------------
#
# IF-MODIFIED-SINCE
#
# -----------------------------------------------------------------------------


def test_if_modified_since_missing():
	assert checkIfModifiedSince("GET", None, MODTIME) is Precondition.Missing
	assert checkIfModifiedSince("GET", "", MODTIME) is Precondition.Missing
	assert checkIfModifiedSince("GET", "not a date", MODTIME) is Precondition.Missing


def test_if_modified_since_only_applies_to_get_and_head():
	assert checkIfModifiedSince("HEAD", DATE, MODTIME) is Precondition.Satisfied
	for method in ("POST", "PUT", "DELETE", "OPTIONS"):
		assert checkIfModifiedSince(method, DATE, MODTIME) is Precondition.Missing


def test_if_modified_since_unknown_modtime():
	assert isZeroTime(None)
	assert isZeroTime(0)
	assert not isZeroTime(MODTIME)
	assert checkIfModifiedSince("GET", DATE, None) is Precondition.Missing
	assert checkIfModifiedSince("GET", DATE, 0.0) is Precondition.Missing


def test_if_modified_since_truncates_modtime():
	# Sub-second precision is ignored, as Last-Modified can't express it
	assert checkIfModifiedSince("GET", DATE, MODTIME + 0.9) is Precondition.Satisfied
	assert checkIfModifiedSince("GET", DATE, MODTIME - 10) is Precondition.Satisfied
	assert checkIfModifiedSince("GET", DATE, MODTIME + 1) is Precondition.Unsatisfied


# -----------------------------------------------------------------------------
#
# ENTITY TAGS
#
# -----------------------------------------------------------------------------


def test_scan_etag():
	assert scanETag('"abc", "def"') == ('"abc"', ', "def"')
	assert scanETag('W/"abc"') == ('W/"abc"', "")
	assert scanETag("abc") == ("", "")
	assert scanETag('"ab c"') == ("", "")
	assert iterETags('"a", W/"b" ,*') == ['"a"', 'W/"b"', "*"]


def test_if_none_match():
	assert checkIfNoneMatch(request(), '"a"') is None
	assert checkIfNoneMatch(request(If_None_Match='W/"a"'), '"a"') is False
	assert checkIfNoneMatch(request(If_None_Match='"b"'), '"a"') is True
	assert checkIfNoneMatch(request(If_None_Match="*"), None) is False


def test_if_range():
	assert checkIfRange(request(If_Range='"a"'), MODTIME, '"a"') is True
	# Weak tags never match If-Range
	assert checkIfRange(request(If_Range='W/"a"'), MODTIME, 'W/"a"') is False
	assert checkIfRange(request(If_Range=DATE), MODTIME, None) is True
	assert checkIfRange(request(If_Range=DATE), MODTIME + 5, None) is False
	assert checkIfRange(request("POST", If_Range=DATE), MODTIME, None) is None


# -----------------------------------------------------------------------------
#
# PRECONDITIONS
#
# -----------------------------------------------------------------------------


def test_not_modified_strips_representation_headers():
	res = notModified(
		request(),
		{
			"Content-Type": "text/plain",
			"Content-Length": "3",
			"Last-Modified": DATE,
		},
	)
	assert res.status == 304
	assert res.getHeader("Content-Type") is None
	assert res.getHeader("Content-Length") is None
	assert res.getHeader("Last-Modified") == DATE
	assert res.body is None


def test_not_modified_prefers_etag():
	res = notModified(request(), {"Last-Modified": DATE, "ETag": '"a"'})
	assert res.getHeader("Last-Modified") is None
	assert res.getHeader("ETag") == '"a"'


def test_preconditions_order():
	# If-Match failing wins over everything else
	res, _ = checkPreconditions(
		request(If_Match='"b"', If_None_Match='"a"'), MODTIME, '"a"'
	)
	assert res is not None and res.status == 412
	res, _ = checkPreconditions(request(If_None_Match='"a"'), MODTIME, '"a"')
	assert res is not None and res.status == 304
	res, _ = checkPreconditions(request("PUT", If_None_Match='"a"'), MODTIME, '"a"')
	assert res is not None and res.status == 412
	res, _ = checkPreconditions(
		request(If_Unmodified_Since=formatHTTPDate(MODTIME - 60)), MODTIME
	)
	assert res is not None and res.status == 412
	res, _ = checkPreconditions(request(If_Modified_Since=DATE), MODTIME)
	assert res is not None and res.status == 304


def test_preconditions_range():
	res, header = checkPreconditions(request(Range="bytes=0-1"), MODTIME, '"a"')
	assert res is None and header == "bytes=0-1"
	res, header = checkPreconditions(
		request(Range="bytes=0-1", If_Range='"b"'), MODTIME, '"a"'
	)
	assert res is None and header is None
	assert checkPreconditions(request(), MODTIME) == (None, None)


# EOF
