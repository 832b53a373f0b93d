import asyncio
from typing import Any, Coroutine, NamedTuple

from ..http.model import HTTPRequest, HTTPResponse
from ..model import Application


class Exchange(NamedTuple):
	"""A processed request, along with its response and the response body
	as it would have been sent."""

	request: HTTPRequest
	response: HTTPResponse
	body: bytes

	@property
	def status(self) -> int:
		return self.response.status

	def header(self, name: str) -> str | None:
		return self.response.getHeader(name)

	@property
	def text(self) -> str:
		return self.body.decode("utf8")


class Bridge:
	"""Bridges process requests through an application outside of the
	server, the response body is read and the response closed like the
	server would."""

	def __init__(self, application: Application):
		if not application:
			raise ValueError("Bridge has not been given an application")
		self.application: Application = application

	async def aprocess(self, request: HTTPRequest) -> Exchange:
		r: HTTPResponse | Coroutine[Any, Any, HTTPResponse] = (
			self.application.process(request)
		)
		response = r if isinstance(r, HTTPResponse) else await r
		try:
			body = b"" if request.method == "HEAD" else b"".join(response.read())
		finally:
			response.close()
		return Exchange(request, response, body)

	def process(self, request: HTTPRequest) -> Exchange:
		return asyncio.run(self.aprocess(request))


# EOF
