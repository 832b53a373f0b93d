import inspect
from abc import ABC, abstractmethod
from enum import Enum
from functools import cached_property
from typing import (
	Any,
	Callable,
	Iterator,
	Literal,
	NamedTuple,
	TypeAlias,
	TypeVar,
	Union,
)
from urllib.parse import unquote_plus

from ..utils.io import asBytes
from .api import ResponseFactory
from .status import HTTP_STATUS

T = TypeVar("T")


# -----------------------------------------------------------------------------
#
# HELPERS
#
# -----------------------------------------------------------------------------


def headername(name: str, *, headers: dict[str, str] = {}) -> str:
	"""Normalizes the header name as `Kebab-Case`."""
	if name in headers:
		return headers[name]
	key: str = name.lower()
	if key in headers:
		return headers[key]
	else:
		normalized: str = "-".join(_.capitalize() for _ in name.split("-"))
		headers[key] = normalized
		return normalized


def parseQuery(text: str) -> dict[str, str]:
	"""Parses a raw query string into a dictionary, the last value wins."""
	res: dict[str, str] = {}
	for item in text.split("&"):
		if not item:
			continue
		kv = item.split("=", 1)
		res[unquote_plus(kv[0])] = unquote_plus(kv[1]) if len(kv) > 1 else ""
	return res


# -----------------------------------------------------------------------------
#
# DATA MODEL
#
# -----------------------------------------------------------------------------


class HTTPRequestLine(NamedTuple):
	"""Represents a request status line"""

	method: str
	path: str
	query: str
	protocol: str


class HTTPHeaders(NamedTuple):
	"""Wraps HTTP headers, keeping key information for response/request processing."""

	headers: dict[str, str]
	contentType: str | None = None
	contentLength: int | None = None


class HTTPProcessingStatus(Enum):
	"""Internal parser/processor state management"""

	Processing = 0
	Body = 1
	Complete = 2
	Timeout = 10
	NoData = 11
	BadFormat = 12


# Type alias for what the parser would produce
HTTPAtom: TypeAlias = Union[
	HTTPRequestLine,
	HTTPHeaders,
	HTTPProcessingStatus,
	"HTTPRequest",
]


# -----------------------------------------------------------------------------
#
# ERRORS
#
# -----------------------------------------------------------------------------


class HTTPRequestError(Exception):
	"""To be raised by handlers to generate an error response, defaulting
	to a 500 error."""

	def __init__(
		self,
		message: str,
		status: int | None = None,
	):
		super().__init__(message)
		self.message: str = message
		self.status: int | None = status


# -----------------------------------------------------------------------------
#
# BODY
#
# -----------------------------------------------------------------------------


class HTTPBodyBlob(NamedTuple):
	"""A body held in memory."""

	payload: bytes = b""
	length: int = 0

	@staticmethod
	def FromBytes(data: bytes) -> "HTTPBodyBlob":
		return HTTPBodyBlob(data, len(data))

	@property
	def raw(self) -> bytes:
		return self.payload


class HTTPBodyStream(NamedTuple):
	"""A body produced chunk by chunk, typically read from an open file
	that must stay open until the stream is exhausted."""

	stream: Iterator[str | bytes]


THTTPBody: TypeAlias = HTTPBodyBlob | HTTPBodyStream


def iterBody(body: "THTTPBody | bytes | None") -> Iterator[bytes]:
	"""Yields the chunks of the given body, as bytes."""
	if body is None:
		return
	elif isinstance(body, bytes):
		yield body
	elif isinstance(body, HTTPBodyBlob):
		yield body.payload
	elif isinstance(body, HTTPBodyStream):
		for chunk in body.stream:
			yield asBytes(chunk)
	else:
		raise ValueError(f"Unsupported body format: {body}")


class HTTPBodyWriter(ABC):
	"""Writes bodies to a destination, subclasses implement `_writeBytes`."""

	async def write(self, body: THTTPBody | bytes | None) -> bool:
		streaming = isinstance(body, HTTPBodyStream)
		for chunk in iterBody(body):
			await self._writeBytes(chunk, streaming)
		if streaming:
			await self._writeBytes(b"", False)
		return True

	@abstractmethod
	async def _writeBytes(
		self, chunk: bytes | None | Literal[False], more: bool = False
	) -> bool: ...


# -----------------------------------------------------------------------------
#
# REQUESTS
#
# -----------------------------------------------------------------------------


class HTTPRequest(ResponseFactory["HTTPResponse"]):
	"""Represents an HTTP requests, which also acts as a factory for
	responses. The `path` is percent-decoded, while the `query` is kept
	as it was received."""

	__slots__ = [
		"protocol",
		"method",
		"path",
		"query",
		"_headers",
		"_body",
	]

	def __init__(
		self,
		method: str,
		path: str,
		query: str | None = None,
		headers: HTTPHeaders | dict[str, str] | None = None,
		body: HTTPBodyBlob | None = None,
		protocol: str = "HTTP/1.1",
	):
		super().__init__()
		self.method: str = method
		self.path: str = path
		self.query: str = query or ""
		self.protocol: str = protocol
		self._headers: HTTPHeaders = (
			headers
			if isinstance(headers, HTTPHeaders)
			else HTTPHeaders({headername(k): v for k, v in (headers or {}).items()})
		)
		self._body: HTTPBodyBlob | None = body

	@property
	def headers(self) -> dict[str, str]:
		return self._headers.headers

	def header(self, name: str) -> str | None:
		return self._headers.headers.get(headername(name))

	@cached_property
	def params(self) -> dict[str, str]:
		return parseQuery(self.query)

	def param(self, name: str, default: T | None = None) -> str | T | None:
		return self.params.get(name, default)

	@property
	def contentType(self) -> str | None:
		return self._headers.contentType

	@property
	def contentLength(self) -> int | None:
		return self._headers.contentLength

	@property
	def body(self) -> HTTPBodyBlob:
		return self._body or HTTPBodyBlob()

	def respond(
		self,
		content: Any = None,
		contentType: str | None = None,
		contentLength: int | None = None,
		status: int = 200,
		headers: dict[str, str] | None = None,
		message: str | None = None,
	) -> "HTTPResponse":
		return HTTPResponse.Create(
			status=status,
			message=message,
			content=content,
			contentType=contentType,
			contentLength=contentLength,
			protocol=self.protocol,
			headers=headers,
		)

	def __str__(self) -> str:
		return f"Request({self.method} {self.path}{f'?{self.query}' if self.query else ''} {self.headers})"


# -----------------------------------------------------------------------------
#
# RESPONSE
#
# -----------------------------------------------------------------------------


class HTTPResponse:
	"""An HTTP response, whose body is either a blob, a stream or nothing.
	Streamed bodies usually hold resources (open files), which are released
	by the `onClose` callback once the response has been written."""

	# Statuses that never have a body, and as such no implicit `Content-Length`
	NO_BODY: frozenset[int] = frozenset((204, 304))

	@staticmethod
	def Create(
		content: Any = None,
		contentType: str | None = None,
		contentLength: int | None = None,
		headers: dict[str, str] | None = None,
		status: int = 200,
		message: str | None = None,
		protocol: str = "HTTP/1.1",
	) -> "HTTPResponse":
		"""Creates a response for the given content, which can be text,
		bytes or a generator of chunks."""
		h: dict[str, str] = {headername(k): v for k, v in (headers or {}).items()}
		body: THTTPBody | None = None
		if content is None:
			pass
		elif isinstance(content, (str, bytes)):
			data = asBytes(content)
			body = HTTPBodyBlob(data, len(data))
			contentLength = len(data)
		elif inspect.isgenerator(content):
			body = HTTPBodyStream(content)
		else:
			raise ValueError(f"Unsupported content {type(content)}:{content}")
		if contentType is not None:
			h["Content-Type"] = contentType
		if contentLength is not None:
			h["Content-Length"] = str(contentLength)
		elif "Content-Length" in h:
			contentLength = int(h["Content-Length"])
		elif body is None and status >= 200 and status not in HTTPResponse.NO_BODY:
			# An empty body is still delimited, so that the connection can
			# be reused.
			contentLength = 0
			h["Content-Length"] = "0"
		return HTTPResponse(
			protocol=protocol,
			status=status,
			message=message or HTTP_STATUS.get(status, "Unknown status"),
			headers=HTTPHeaders(h, h.get("Content-Type"), contentLength),
			body=body,
			# A body of unknown length ends when the connection does
			shouldClose=body is not None and contentLength is None,
		)

	__slots__ = [
		"protocol",
		"status",
		"message",
		"headers",
		"body",
		"shouldClose",
		"_onClose",
	]

	def __init__(
		self,
		protocol: str,
		status: int,
		message: str | None,
		headers: HTTPHeaders,
		body: THTTPBody | None = None,
		shouldClose: bool = False,
	):
		self.protocol: str = protocol
		self.status: int = status
		self.message: str | None = message
		self.headers: HTTPHeaders = headers
		self.body: THTTPBody | None = body
		self.shouldClose: bool = shouldClose
		self._onClose: Callable[[HTTPResponse], None] | None = None

	def getHeader(self, name: str) -> str | None:
		return self.headers.headers.get(headername(name))

	def setHeader(self, name: str, value: str | int | None) -> "HTTPResponse":
		"""Sets the given header, a `None` value removes it."""
		key = headername(name)
		if value is None:
			self.headers.headers.pop(key, None)
		else:
			self.headers.headers[key] = str(value)
		return self

	def setHeaders(self, headers: dict[str, str | int | None]) -> "HTTPResponse":
		for name, value in headers.items():
			self.setHeader(name, value)
		return self

	def head(self) -> bytes:
		"""Returns the status line and headers, ready to be sent."""
		message = self.message or HTTP_STATUS.get(self.status, "Unknown status")
		lines = [f"{self.protocol} {self.status} {message}"]
		lines.extend(f"{k}: {v}" for k, v in self.headers.headers.items())
		return ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1")

	def read(self) -> Iterator[bytes]:
		"""Iterates on the body chunks, used when the response is consumed
		without a writer (bridges, tests)."""
		yield from iterBody(self.body)

	def onClose(
		self, callback: Callable[["HTTPResponse"], None] | None
	) -> "HTTPResponse":
		self._onClose = callback
		return self

	def close(self) -> None:
		"""Runs the close callback, at most once."""
		callback, self._onClose = self._onClose, None
		if callback:
			callback(self)

	def __repr__(self) -> str:
		return f"(HTTPResponse {self.status} {self.message} {self.headers.headers})"

# EOF
