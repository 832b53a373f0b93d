from contextlib import ExitStack
from enum import Enum
from pathlib import Path
from typing import NamedTuple

from ..config import EXCLUDE, INDEX
from ..decorators import on
from ..exclusions import Exclusions, TExclude, exclusions, hides
from ..fs import Directory, File, FileInfo, FileSystem, cleanPath, notFound
from ..http.content import serveContent
from ..http.model import HTTPBodyStream, HTTPRequest, HTTPResponse
from ..model import Service
from ..utils.logging import LogLevel, debug, logged, warning
from .listing import listingHref, serveListing

# --
# == File service
#
# Serves the files and directories of a `FileSystem`. A request goes
# through the following steps, the first one that produces a response
# wins:
#
# - a path ending in `/index.html` is redirected to `./`
# - the cleaned path is opened, failures are answered as 404, 403 or 500
# - a directory without a trailing `/` is redirected to `<name>/`, a file
#   with a trailing `/` is redirected to `../<name>`
# - a directory containing an index file is served as that file
# - a directory is listed, a file is served as content.


class Redirect(Enum):
	"""The canonical path redirections, all of them permanent and relative."""

	Index = "index"
	Directory = "directory"
	File = "file"


class Redirection(NamedTuple):
	type: Redirect
	location: str


def basename(path: str) -> str:
	"""Returns the last element of the `/`-separated path, trailing slashes
	being removed. This is purely lexical, `..` is returned as-is."""
	stripped = path.rstrip("/")
	if not path:
		return "."
	elif not stripped:
		return "/"
	else:
		return stripped.rsplit("/", 1)[-1]


def toHTTPError(error: OSError) -> tuple[str, int]:
	"""Maps the given error to a message and an HTTP status. The message
	never includes the error's own text, so that nothing is disclosed
	about the local filesystem."""
	if isinstance(error, FileNotFoundError):
		return "404 page not found", 404
	elif isinstance(error, PermissionError):
		return "403 Forbidden", 403
	else:
		return "500 Internal Server Error", 500


class FileService(Service):
	"""A service to serve files from a filesystem, which defaults to the
	local directory at `root`."""

	def __init__(
		self,
		root: str | Path | None = None,
		*,
		fs: FileSystem | None = None,
		exclude: Exclusions | TExclude | str | None = EXCLUDE,
		index: str | None = INDEX,
		prefix: str | None = None,
	):
		super().__init__(prefix=prefix)
		self.fs: FileSystem = fs or Directory(root or ".")
		self.exclude: TExclude | None = exclusions(exclude)
		self.index: str | None = index.strip("/") if index else None

	# =========================================================================
	# PATH RESOLVER
	# =========================================================================

	def resolvePath(self, path: str) -> str:
		"""Returns the cleaned, rooted version of the request path, which
		is the only form used to access the filesystem."""
		return cleanPath(path if path.startswith("/") else f"/{path}")

	def open(self, name: str) -> tuple[File, FileInfo]:
		"""Opens the entry at the given cleaned `name`, returning the handle
		and its information. The caller owns the handle. Excluded entries
		can't be opened, as if they did not exist."""
		if hides(self.exclude, name):
			raise notFound(name)
		file = self.fs.open(name)
		try:
			return file, file.stat()
		except BaseException:
			file.close()
			raise

	# =========================================================================
	# REDIRECT POLICY
	# =========================================================================

	def redirection(
		self, path: str, info: FileInfo | None = None
	) -> Redirection | None:
		"""Returns the redirection to the canonical version of the given
		request `path`. The `info` is that of the entry the path resolves
		to, when it is not known only the index rule applies."""
		if self.index and path.endswith(f"/{self.index}"):
			return Redirection(Redirect.Index, "./")
		elif info is None:
			return None
		elif info.isDir and not path.endswith("/"):
			return Redirection(Redirect.Directory, listingHref(f"{basename(path)}/"))
		elif not info.isDir and path.endswith("/"):
			return Redirection(
				Redirect.File, f"../{listingHref(basename(path)).removeprefix('./')}"
			)
		else:
			return None

	def redirect(self, request: HTTPRequest, redirection: Redirection) -> HTTPResponse:
		location = redirection.location
		if request.query:
			location = f"{location}?{request.query}"
		if logged(LogLevel.Debug):
			debug(
				"Redirecting",
				Path=request.path,
				Type=redirection.type.value,
				Location=location,
			)
		return request.redirect(location, permanent=True)

	# =========================================================================
	# DISPATCHER
	# =========================================================================

	def error(self, request: HTTPRequest, error: OSError) -> HTTPResponse:
		message, status = toHTTPError(error)
		if status == 500:
			warning(
				"Could not open file",
				Path=request.path,
				Reason=error.strerror or error.__class__.__name__,
			)
		return request.error(status, message)

	@on(ANY=("/", "/{path:any}"))
	def serve(self, request: HTTPRequest, path: str = "") -> HTTPResponse:
		"""Serves the file or directory at `path`. The handles opened to
		produce the response are released when the handler returns, or
		once the response is closed when its body is read from them."""
		with ExitStack() as stack:
			response = self.respond(request, path, stack)
			if isinstance(response.body, HTTPBodyStream):
				handles = stack.pop_all()
				response.onClose(lambda _: handles.close())
			return response

	def respond(self, request: HTTPRequest, path: str, stack: ExitStack) -> HTTPResponse:
		upath = path if path.startswith("/") else f"/{path}"
		# The index redirection does not need to open anything
		if r := self.redirection(upath):
			return self.redirect(request, r)

		name = self.resolvePath(upath)
		try:
			file, info = self.open(name)
		except OSError as e:
			return self.error(request, e)
		stack.callback(file.close)

		if r := self.redirection(upath, info):
			return self.redirect(request, r)

		if info.isDir and self.index:
			index = f"{name.rstrip('/')}/{self.index}"
			try:
				index_file, index_info = self.open(index)
			except OSError:
				pass
			else:
				stack.callback(index_file.close)
				# An index that is a directory is ignored, the parent is listed
				if not index_info.isDir:
					file, info = index_file, index_info

		if info.isDir:
			return serveListing(request, file, info, self.exclude)
		else:
			return serveContent(request, info.name, info.modtime, file, size=info.size)

	def __repr__(self) -> str:
		return f"(FileService {self.fs}{f' :exclude {self.exclude}' if self.exclude else ''})"


# EOF
