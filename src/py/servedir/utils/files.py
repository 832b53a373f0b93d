import mimetypes
import posixpath

mimetypes.init()

# Extensions that `mimetypes` may not know about, or knows differently
# depending on the platform.
MIME_TYPES: dict[str, str] = {
	"bz2": "application/x-bzip",
	"gz": "application/x-gzip",
	"js": "text/javascript",
	"mjs": "text/javascript",
	"json": "application/json",
	"md": "text/markdown",
	"wasm": "application/wasm",
	"webp": "image/webp",
	"woff2": "font/woff2",
}

# Types that are textual even though they are not `text/*`, and as such get
# an explicit charset.
TEXT_TYPES: frozenset[str] = frozenset(("application/javascript", "image/svg+xml"))

# Number of bytes looked at when sniffing content.
SNIFF_LENGTH: int = 512

# Exact prefixes, in the order they are tested.
SIGNATURES: tuple[tuple[bytes, str], ...] = (
	(b"\xfe\xff", "text/plain; charset=utf-16be"),
	(b"\xff\xfe", "text/plain; charset=utf-16le"),
	(b"\xef\xbb\xbf", "text/plain; charset=utf-8"),
	(b"%PDF-", "application/pdf"),
	(b"%!PS-Adobe-", "application/postscript"),
	(b"GIF87a", "image/gif"),
	(b"GIF89a", "image/gif"),
	(b"\x89PNG\r\n\x1a\n", "image/png"),
	(b"\xff\xd8\xff", "image/jpeg"),
	(b"BM", "image/bmp"),
	(b"\x00\x00\x01\x00", "image/x-icon"),
	(b"OggS\x00", "application/ogg"),
	(b"PK\x03\x04", "application/zip"),
	(b"\x1f\x8b\x08", "application/x-gzip"),
	(b"Rar!\x1a\x07", "application/x-rar-compressed"),
	(b"\x00asm", "application/wasm"),
	(b"wOFF", "font/woff"),
	(b"wOF2", "font/woff2"),
	(b"ID3", "audio/mpeg"),
)

# Tags that, found at the start of the (whitespace stripped) content and
# followed by a space or `>`, denote an HTML document.
HTML_SIGNATURES: tuple[bytes, ...] = tuple(
	_.encode("ascii")
	for _ in (
		"<!DOCTYPE HTML",
		"<HTML",
		"<HEAD",
		"<SCRIPT",
		"<IFRAME",
		"<H1",
		"<DIV",
		"<FONT",
		"<TABLE",
		"<A",
		"<STYLE",
		"<TITLE",
		"<B",
		"<BODY",
		"<BR",
		"<P",
		"<!--",
	)
)

BINARY_BYTES: frozenset[int] = frozenset(
	list(range(0x00, 0x09)) + [0x0B] + list(range(0x0E, 0x1B)) + list(range(0x1C, 0x20))
)

WHITESPACE: bytes = b"\t\n\x0c\r "


def withCharset(contentType: str) -> str:
	"""Adds the UTF-8 charset to textual content types."""
	if "charset=" in contentType:
		return contentType
	elif contentType.startswith("text/") or contentType in TEXT_TYPES:
		return f"{contentType}; charset=utf-8"
	else:
		return contentType


def contentType(name: str) -> str | None:
	"""Guesses the content type from the extension of the given name,
	returns `None` when there is no known type."""
	ext = posixpath.splitext(name)[1].lower()
	if not ext:
		return None
	res = MIME_TYPES.get(ext[1:]) or mimetypes.guess_type(f"file{ext}", strict=False)[0]
	return withCharset(res) if res else None


def sniff(data: bytes) -> str:
	"""Determines the content type of the given data by looking at (at most)
	its first `SNIFF_LENGTH` bytes. This always returns a valid content
	type, defaulting to `application/octet-stream`."""
	data = data[:SNIFF_LENGTH]
	for prefix, content_type in SIGNATURES:
		if data.startswith(prefix):
			return content_type
	if data[:4] == b"RIFF" and data[8:14] == b"WEBPVP":
		return "image/webp"
	text = data.lstrip(WHITESPACE)
	if text[:5] == b"<?xml":
		return "text/xml; charset=utf-8"
	upper = text.upper()
	for tag in HTML_SIGNATURES:
		if upper.startswith(tag) and (
			len(text) > len(tag) and text[len(tag)] in b" >"
		):
			return "text/html; charset=utf-8"
	if any(_ in BINARY_BYTES for _ in data):
		return "application/octet-stream"
	return "text/plain; charset=utf-8"


# EOF
