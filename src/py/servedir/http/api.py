from abc import ABC, abstractmethod
from typing import Any, Generic, Iterator, TypeVar

from .status import HTTP_STATUS

T = TypeVar("T")

# -----------------------------------------------------------------------------
#
# API
#
# -----------------------------------------------------------------------------

# --
# == HTTP Request Response API
#
# Defines the high level API functions (orthogonal to the underlying model)
# to manipulate requests/responses.

# Error responses are plain text and must not be sniffed by the client.
ERROR_CONTENT_TYPE: str = "text/plain; charset=utf-8"
ERROR_HEADERS: dict[str, str] = {"X-Content-Type-Options": "nosniff"}


class ResponseFactory(ABC, Generic[T]):
	@abstractmethod
	def respond(
		self,
		content: Any = None,
		contentType: str | None = None,
		contentLength: int | None = None,
		status: int = 200,
		headers: dict[str, str] | None = None,
		message: str | None = None,
	) -> T: ...

	def empty(
		self,
		status: int = 200,
		headers: dict[str, str] | None = None,
	) -> T:
		return self.respond(
			content=None,
			contentType=None,
			status=status,
			headers=headers,
		)

	def error(
		self,
		status: int,
		content: str | None = None,
		headers: dict[str, str] | None = None,
	) -> T:
		"""Returns an error as a single line of plain text, defaulting to
		the status code and its reason phrase, like `403 Forbidden`."""
		message = HTTP_STATUS.get(status, "Server Error")
		text = f"{status} {message}" if content is None else content
		return self.respond(
			content=f"{text}\n",
			contentType=ERROR_CONTENT_TYPE,
			status=status,
			message=message,
			headers=ERROR_HEADERS | headers if headers else ERROR_HEADERS,
		)

	def forbidden(self, content: str | None = None, *, status: int = 403) -> T:
		return self.error(status, content=content)

	def notFound(self, content: str = "404 page not found", *, status: int = 404) -> T:
		return self.error(status, content=content)

	def fail(self, content: str | None = None, *, status: int = 500) -> T:
		return self.error(status, content=content)

	def notModified(self, headers: dict[str, str] | None = None) -> T:
		return self.empty(status=304, headers=headers)

	def redirect(self, url: str, permanent: bool = False) -> T:
		# SEE: https://developer.mozilla.org/en-US/docs/Web/HTTP/Redirections
		return self.empty(
			status=301 if permanent else 302, headers={"Location": str(url)}
		)

	def respondText(
		self,
		content: str | bytes | Iterator[str | bytes],
		contentType: str = "text/plain; charset=utf-8",
		status: int = 200,
	) -> T:
		return self.respond(content=content, contentType=contentType, status=status)

	def respondHTML(
		self,
		html: str | bytes | Iterator[str | bytes],
		status: int = 200,
		headers: dict[str, str] | None = None,
	) -> T:
		return self.respond(
			content=html,
			contentType="text/html; charset=utf-8",
			status=status,
			headers=headers,
		)


# EOF
