import errno
import io
import os
import stat
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, NamedTuple

# --
# == Filesystem abstraction
#
# The file service never touches the OS directly: it opens `/`-separated
# names through a `FileSystem`, and gets back `File` handles that can be
# stat'ed, listed (directories) or read (regular files). Failures are
# reported as `OSError` subclasses (`FileNotFoundError`, `PermissionError`,
# …) so that they can be mapped to HTTP errors.


class FileInfo(NamedTuple):
	"""Describes a file or a directory. The `modtime` is a UNIX timestamp,
	`None` when it is not known."""

	name: str
	size: int
	modtime: float | None
	isDir: bool
	mode: int = 0

	@staticmethod
	def FromStat(name: str, stats: os.stat_result) -> "FileInfo":
		return FileInfo(
			name=name,
			size=stats.st_size,
			modtime=stats.st_mtime,
			isDir=stat.S_ISDIR(stats.st_mode),
			mode=stats.st_mode,
		)


class File(ABC):
	"""An open file or directory, to be closed once done with."""

	@abstractmethod
	def stat(self) -> FileInfo: ...

	@abstractmethod
	def readdir(self) -> list[FileInfo]:
		"""Returns the entries of the directory, in no particular order."""

	@abstractmethod
	def read(self, size: int = -1, /) -> bytes: ...

	@abstractmethod
	def seek(self, offset: int, whence: int = io.SEEK_SET, /) -> int: ...

	@abstractmethod
	def close(self) -> None: ...

	def __enter__(self) -> "File":
		return self

	def __exit__(self, *args: object) -> None:
		self.close()


class FileSystem(ABC):
	"""Opens files by their `/`-separated name, relative to the root of
	the filesystem."""

	@abstractmethod
	def open(self, name: str) -> File: ...


def cleanPath(path: str) -> str:
	"""Returns the shortest path equivalent to `path` by purely lexical
	processing: duplicate slashes and `.` elements are removed, `..`
	elements are resolved against their parent, and a rooted path can
	never go above `/`. The empty path cleans to `.`."""
	rooted = path.startswith("/")
	parts: list[str] = []
	for _ in path.split("/"):
		if not _ or _ == ".":
			continue
		elif _ == "..":
			if parts and parts[-1] != "..":
				parts.pop()
			elif not rooted:
				parts.append(_)
		else:
			parts.append(_)
	res = "/".join(parts)
	if rooted:
		return f"/{res}"
	else:
		return res or "."


def notFound(name: str) -> FileNotFoundError:
	return FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), name)


def notPermitted(name: str) -> PermissionError:
	return PermissionError(errno.EACCES, os.strerror(errno.EACCES), name)


# -----------------------------------------------------------------------------
#
# DISK
#
# -----------------------------------------------------------------------------


class DiskFile(File):
	"""A file or directory from the local filesystem. Regular files are
	opened when the handle is created, directories are only listed when
	`readdir` is called."""

	def __init__(self, path: Path, name: str, info: FileInfo):
		self.path: Path = path
		self.name: str = name
		self.info: FileInfo = info
		self.fd: BinaryIO | None = None if info.isDir else open(path, "rb")

	def stat(self) -> FileInfo:
		stats = os.fstat(self.fd.fileno()) if self.fd else os.stat(self.path)
		return FileInfo.FromStat(self.name, stats)

	def readdir(self) -> list[FileInfo]:
		if not self.info.isDir:
			raise NotADirectoryError(errno.ENOTDIR, os.strerror(errno.ENOTDIR), self.name)
		res: list[FileInfo] = []
		with os.scandir(self.path) as entries:
			for entry in entries:
				try:
					stats = entry.stat()
				except OSError:
					# NOTE: A dangling symlink is still listed
					stats = entry.stat(follow_symlinks=False)
				res.append(FileInfo.FromStat(entry.name, stats))
		return res

	def read(self, size: int = -1, /) -> bytes:
		if not self.fd:
			raise IsADirectoryError(errno.EISDIR, os.strerror(errno.EISDIR), self.name)
		return self.fd.read(size)

	def seek(self, offset: int, whence: int = io.SEEK_SET, /) -> int:
		if not self.fd:
			raise IsADirectoryError(errno.EISDIR, os.strerror(errno.EISDIR), self.name)
		return self.fd.seek(offset, whence)

	def close(self) -> None:
		if self.fd:
			self.fd.close()
			self.fd = None


class Directory(FileSystem):
	"""A filesystem rooted at the given local directory. Names are cleaned
	before being joined with the root, so that they can't point outside of
	it."""

	def __init__(self, root: str | Path = "."):
		self.root: Path = (root if isinstance(root, Path) else Path(root)).absolute()

	def resolve(self, name: str) -> Path:
		"""Returns the local path for the given `/`-separated name."""
		if "\x00" in name or (os.sep != "/" and os.sep in name):
			raise OSError(errno.EINVAL, "invalid character in file path", name)
		relative = cleanPath(f"/{name}").lstrip("/")
		return self.root.joinpath(*relative.split("/")) if relative else self.root

	def open(self, name: str) -> DiskFile:
		path = self.resolve(name)
		try:
			info = FileInfo.FromStat(path.name, os.stat(path))
			if info.isDir and not os.access(path, os.R_OK):
				raise notPermitted(name)
			return DiskFile(path, path.name, info)
		except NotADirectoryError as e:
			# One of the parents is a file, which means that the
			# name does not exist.
			raise notFound(name) from e

	def __repr__(self) -> str:
		return f"(Directory {self.root})"


# -----------------------------------------------------------------------------
#
# MEMORY
#
# -----------------------------------------------------------------------------


@dataclass(slots=True)
class MemoryNode:
	"""An entry in a `MemoryFileSystem`, a `None` content denotes a directory."""

	content: bytes | None
	modtime: float | None
	# Opening the node raises a permission error
	denied: bool = False
	# Listing the node raises a permission error
	unreadable: bool = False
	children: set[str] = field(default_factory=set)

	@property
	def isDir(self) -> bool:
		return self.content is None


class MemoryFile(File):
	def __init__(self, fs: "MemoryFileSystem", path: str, node: MemoryNode):
		self.fs: MemoryFileSystem = fs
		self.path: str = path
		self.node: MemoryNode = node
		self.data: io.BytesIO | None = (
			None if node.content is None else io.BytesIO(node.content)
		)
		self.closed: bool = False

	def stat(self) -> FileInfo:
		return self.fs.info(self.path, self.node)

	def readdir(self) -> list[FileInfo]:
		if not self.node.isDir:
			raise NotADirectoryError(errno.ENOTDIR, os.strerror(errno.ENOTDIR), self.path)
		if self.node.unreadable:
			raise notPermitted(self.path)
		return [
			self.fs.info(path, self.fs.nodes[path])
			for path in self.node.children
		]

	def read(self, size: int = -1, /) -> bytes:
		if self.data is None:
			raise IsADirectoryError(errno.EISDIR, os.strerror(errno.EISDIR), self.path)
		return self.data.read(size)

	def seek(self, offset: int, whence: int = io.SEEK_SET, /) -> int:
		if self.data is None:
			raise IsADirectoryError(errno.EISDIR, os.strerror(errno.EISDIR), self.path)
		return self.data.seek(offset, whence)

	def close(self) -> None:
		self.closed = True
		self.fs.opened.discard(self)


class MemoryFileSystem(FileSystem):
	"""An in-memory filesystem, where parent directories are created
	implicitly. The handles that are currently open are tracked in
	`opened`, which makes it easy to check that they are released."""

	def __init__(
		self, files: dict[str, str | bytes] | None = None, modtime: float | None = None
	):
		self.modtime: float | None = modtime
		self.nodes: dict[str, MemoryNode] = {"/": MemoryNode(None, modtime)}
		self.opened: set[MemoryFile] = set()
		for path, content in (files or {}).items():
			self.add(path, content)

	def _parent(self, path: str) -> str:
		parent = path.rsplit("/", 1)[0]
		return parent or "/"

	def _node(self, path: str, node: MemoryNode) -> MemoryNode:
		path = cleanPath(f"/{path}")
		if path == "/":
			raise ValueError("The root node already exists")
		parent = self._parent(path)
		if parent not in self.nodes:
			self.mkdir(parent, node.modtime)
		elif not self.nodes[parent].isDir:
			raise ValueError(f"Parent is not a directory: {parent}")
		self.nodes[parent].children.add(path)
		self.nodes[path] = node
		return node

	def add(
		self, path: str, content: str | bytes = b"", modtime: float | None = None
	) -> "MemoryFileSystem":
		"""Adds a file with the given content."""
		self._node(
			path,
			MemoryNode(
				content.encode("utf8") if isinstance(content, str) else content,
				self.modtime if modtime is None else modtime,
			),
		)
		return self

	def mkdir(self, path: str, modtime: float | None = None) -> "MemoryFileSystem":
		"""Adds a directory (and its parents), keeps existing directories."""
		key = cleanPath(f"/{path}")
		node = self.nodes.get(key)
		if node is None:
			self._node(key, MemoryNode(None, self.modtime if modtime is None else modtime))
		elif modtime is not None:
			node.modtime = modtime
		return self

	def deny(self, path: str) -> "MemoryFileSystem":
		"""Makes opening the given path (or anything below) fail with
		a permission error."""
		self.nodes[cleanPath(f"/{path}")].denied = True
		return self

	def unreadable(self, path: str) -> "MemoryFileSystem":
		"""Makes listing the given directory fail with a permission error."""
		self.nodes[cleanPath(f"/{path}")].unreadable = True
		return self

	def info(self, path: str, node: MemoryNode) -> FileInfo:
		return FileInfo(
			name=path.rsplit("/", 1)[-1] or "/",
			size=0 if node.content is None else len(node.content),
			modtime=node.modtime,
			isDir=node.isDir,
			mode=(stat.S_IFDIR | 0o755) if node.isDir else (stat.S_IFREG | 0o644),
		)

	def open(self, name: str) -> MemoryFile:
		path = cleanPath(f"/{name}")
		# We walk from the root, like the OS would
		current = ""
		for segment in ([] if path == "/" else path[1:].split("/")):
			parent = self.nodes[current or "/"]
			if parent.denied:
				raise notPermitted(name)
			if not parent.isDir:
				raise notFound(name)
			current = f"{current}/{segment}"
			if current not in self.nodes:
				raise notFound(name)
		node = self.nodes[path]
		if node.denied:
			raise notPermitted(name)
		res = MemoryFile(self, path, node)
		self.opened.add(res)
		return res


# EOF
