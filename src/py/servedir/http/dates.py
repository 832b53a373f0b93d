import re
from calendar import timegm
from email.utils import formatdate, parsedate_tz

# --
# HTTP dates are always expressed in GMT with a one second resolution, using
# the IMF-fixdate format `Sun, 06 Nov 1994 08:49:37 GMT`. Recipients must also
# accept the obsolete RFC 850 `Sunday, 06-Nov-94 08:49:37 GMT` and asctime
# `Sun Nov  6 08:49:37 1994` formats.
#
# SEE: https://www.rfc-editor.org/rfc/rfc9110#section-5.6.7

# asctime has no zone, it is implicitly GMT
RE_ASCTIME = re.compile(r"[A-Z][a-z]{2} [A-Z][a-z]{2} [ \d]?\d \d\d:\d\d:\d\d \d{4}")


def formatHTTPDate(timestamp: float) -> str:
	"""Formats the given UNIX timestamp as an IMF-fixdate."""
	return formatdate(int(timestamp), usegmt=True)


def parseHTTPDate(text: str | None) -> int | None:
	"""Parses an HTTP date into a UNIX timestamp, returning `None` when the
	date can't be parsed."""
	if not text:
		return None
	text = text.strip()
	# Dates in any other zone, numeric offsets included, are invalid
	if not (text.endswith(" GMT") or RE_ASCTIME.fullmatch(text)):
		return None
	try:
		parsed = parsedate_tz(text)
	except (TypeError, ValueError, IndexError):
		return None
	if parsed is None:
		return None
	try:
		return timegm(parsed[:6] + (0, 1, 0))
	except (OverflowError, ValueError):
		return None


# EOF
