from urllib.parse import unquote

from ..http.model import HTTPBodyBlob, HTTPRequest
from ..http.parser import HTTPParser
from ..model import Application, Service, mount
from . import Bridge, Exchange


class PythonBridge(Bridge):
	"""Processes requests given as Python values or as raw HTTP bytes,
	which is what tests and scripts use."""

	def request(
		self,
		method: str,
		path: str,
		headers: dict[str, str] | None = None,
		body: bytes | None = None,
	) -> Exchange:
		"""Processes a request for the given `path`, which can include a
		query string and is percent-decoded like the server does."""
		p: list[str] = path.split("?", 1)
		return self.process(
			HTTPRequest(
				method=method.upper(),
				path=unquote(p[0], errors="surrogateescape"),
				query=p[1] if len(p) > 1 else None,
				headers=headers,
				body=HTTPBodyBlob.FromBytes(body) if body else None,
			)
		)

	def get(self, path: str, headers: dict[str, str] | None = None) -> Exchange:
		return self.request("GET", path, headers)

	def head(self, path: str, headers: dict[str, str] | None = None) -> Exchange:
		return self.request("HEAD", path, headers)

	def requestBytes(self, data: bytes) -> list[Exchange]:
		"""Parses the given raw request(s) and processes each of them."""
		parser = HTTPParser()
		return [
			self.process(_) for _ in parser.feed(data) if isinstance(_, HTTPRequest)
		]


def run(*services: Application | Service) -> PythonBridge:
	"""Returns a bridge to the application made of the given services."""
	return PythonBridge(mount(*services))


# EOF
