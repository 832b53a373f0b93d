import io

import pytest

from servedir.bridge import Exchange
from servedir.bridge.python import PythonBridge, run
from servedir.exclusions import Exclusions
from servedir.fs import MemoryFileSystem
from servedir.http.dates import formatHTTPDate
from servedir.services.files import FileService, Redirect, basename, toHTTPError
from servedir.utils import logging

MODTIME: float = 784111777.0
DATE: str = formatHTTPDate(MODTIME)


def memory() -> MemoryFileSystem:
	return (
		MemoryFileSystem(
			{
				"/hello.txt": "Hello, World!\n",
				"/site/index.html": "<html><body>Site</body></html>\n",
				"/site/about.html": "<p>About</p>\n",
				"/names/a&b.txt": "",
				"/names/<x>.txt": "",
				"/names/Zeta": "",
				"/names/alpha": "",
				"/names/c:d": "",
				"/names/what?.txt": "",
				"/names/sub/file.txt": "",
				"/names/.git/HEAD": "ref: refs/heads/main\n",
				"/.git/config": "[core]\n",
				"/.vscode/settings.json": "{}",
				"/private/key.txt": "secret\n",
			},
			modtime=MODTIME,
		)
		.mkdir("/locked")
		.deny("/private")
		.unreadable("/locked")
	)


@pytest.fixture
def fs() -> MemoryFileSystem:
	return memory()


@pytest.fixture
def bridge(fs: MemoryFileSystem) -> PythonBridge:
	return run(FileService(fs=fs))


def get(
	bridge: PythonBridge, fs: MemoryFileSystem, path: str, method: str = "GET", **headers: str
) -> Exchange:
	res = bridge.request(
		method, path, headers={k.replace("_", "-"): v for k, v in headers.items()}
	)
	# Every handle opened to answer the request has been released
	assert not fs.opened, f"Handles left open by {method} {path}: {fs.opened}"
	return res


# -----------------------------------------------------------------------------
#
# FILES
#
# -----------------------------------------------------------------------------


def test_file(bridge: PythonBridge, fs: MemoryFileSystem):
	res = get(bridge, fs, "/hello.txt")
	assert res.status == 200
	assert res.body == b"Hello, World!\n"
	assert res.header("Content-Type") == "text/plain; charset=utf-8"
	assert res.header("Content-Length") == "14"
	assert res.header("Last-Modified") == DATE


def test_file_head(bridge: PythonBridge, fs: MemoryFileSystem):
	res = get(bridge, fs, "/hello.txt", "HEAD")
	assert res.status == 200
	assert res.body == b""
	assert res.header("Content-Length") == "14"


def test_file_any_method(bridge: PythonBridge, fs: MemoryFileSystem):
	assert get(bridge, fs, "/hello.txt", "POST").body == b"Hello, World!\n"


def test_file_not_modified(bridge: PythonBridge, fs: MemoryFileSystem):
	res = get(bridge, fs, "/hello.txt", If_Modified_Since=DATE)
	assert res.status == 304
	assert res.body == b""
	assert res.header("Content-Type") is None
	assert res.header("Content-Length") is None


def test_file_range(bridge: PythonBridge, fs: MemoryFileSystem):
	res = get(bridge, fs, "/hello.txt", Range="bytes=7-11")
	assert res.status == 206
	assert res.body == b"World"
	assert res.header("Content-Range") == "bytes 7-11/14"


def test_unclean_path(bridge: PythonBridge, fs: MemoryFileSystem):
	res = get(bridge, fs, "/names/../hello.txt")
	assert res.status == 200
	assert res.body == b"Hello, World!\n"
	assert get(bridge, fs, "//hello.txt").status == 200
	# The root can't be escaped
	assert get(bridge, fs, "/../../hello.txt").status == 200


# -----------------------------------------------------------------------------
#
# REDIRECTS
#
# -----------------------------------------------------------------------------


def test_redirect_directory(bridge: PythonBridge, fs: MemoryFileSystem):
	res = get(bridge, fs, "/names")
	assert res.status == 301
	assert res.header("Location") == "names/"
	assert res.body == b""
	res = get(bridge, fs, "/names/sub?x=1")
	assert res.status == 301
	assert res.header("Location") == "sub/?x=1"


def test_redirect_file(bridge: PythonBridge, fs: MemoryFileSystem):
	res = get(bridge, fs, "/hello.txt/")
	assert res.status == 301
	assert res.header("Location") == "../hello.txt"
	res = get(bridge, fs, "/site/about.html/?a=b&c")
	assert res.header("Location") == "../about.html?a=b&c"


def test_redirect_index(bridge: PythonBridge, fs: MemoryFileSystem):
	res = get(bridge, fs, "/site/index.html")
	assert res.status == 301
	assert res.header("Location") == "./"
	assert get(bridge, fs, "/site/index.html?v=2").header("Location") == "./?v=2"
	# Redirected before the filesystem is looked at
	assert get(bridge, fs, "/nowhere/index.html").header("Location") == "./"


def test_redirect_location_is_encoded(fs: MemoryFileSystem):
	fs.mkdir("/with space")
	fs.mkdir("/x:y")
	bridge = run(FileService(fs=fs))
	assert get(bridge, fs, "/with space").header("Location") == "with%20space/"
	assert get(bridge, fs, "/x:y").header("Location") == "./x:y/"


def test_canonical_paths_do_not_redirect(bridge: PythonBridge, fs: MemoryFileSystem):
	for path in ("/", "/hello.txt", "/names/", "/site/", "/names/sub/"):
		assert get(bridge, fs, path).status == 200, path


def test_redirection_policy():
	service = FileService(fs=memory())
	info = service.fs.open("/names").stat()
	r = service.redirection("/names", info)
	assert r is not None and r.type is Redirect.Directory and r.location == "names/"
	assert service.redirection("/names/", info) is None
	r = service.redirection("/a/index.html")
	assert r is not None and r.type is Redirect.Index
	assert service.redirection("/names") is None


def test_basename():
	assert basename("/docs") == "docs"
	assert basename("/a/b/") == "b"
	assert basename("/a/..") == ".."
	assert basename("/") == "/"
	assert basename("") == "."


# -----------------------------------------------------------------------------
#
# INDEX
#
# -----------------------------------------------------------------------------


def test_index(bridge: PythonBridge, fs: MemoryFileSystem):
	res = get(bridge, fs, "/site/")
	assert res.status == 200
	assert res.body == b"<html><body>Site</body></html>\n"
	assert res.header("Content-Type") == "text/html; charset=utf-8"


def test_index_directory_is_not_served(fs: MemoryFileSystem):
	fs.mkdir("/odd/index.html")
	fs.add("/odd/readme.txt", "")
	bridge = run(FileService(fs=fs))
	res = get(bridge, fs, "/odd/")
	assert res.status == 200
	assert b'<a href="index.html/">index.html/</a>' in res.body


def test_custom_index(fs: MemoryFileSystem):
	fs.add("/docs/README.txt", "Read me\n")
	bridge = run(FileService(fs=fs, index="README.txt"))
	assert get(bridge, fs, "/docs/").body == b"Read me\n"
	assert get(bridge, fs, "/docs/README.txt").header("Location") == "./"
	# The default index is then a regular file
	assert get(bridge, fs, "/site/index.html").status == 200


# -----------------------------------------------------------------------------
#
# LISTINGS
#
# -----------------------------------------------------------------------------


def test_listing(bridge: PythonBridge, fs: MemoryFileSystem):
	res = get(bridge, fs, "/names/")
	assert res.status == 200
	assert res.header("Content-Type") == "text/html; charset=utf-8"
	assert res.header("Last-Modified") == DATE
	assert res.text == (
		"<pre>\n"
		'<a href="%3Cx%3E.txt">&lt;x&gt;.txt</a>\n'
		'<a href="Zeta">Zeta</a>\n'
		'<a href="a&b.txt">a&amp;b.txt</a>\n'
		'<a href="alpha">alpha</a>\n'
		'<a href="./c:d">c:d</a>\n'
		'<a href="sub/">sub/</a>\n'
		'<a href="what%3F.txt">what?.txt</a>\n'
		"</pre>\n"
	)


def test_listing_head(bridge: PythonBridge, fs: MemoryFileSystem):
	res = get(bridge, fs, "/names/", "HEAD")
	assert res.status == 200
	assert res.body == b""
	assert int(res.header("Content-Length") or 0) > 0


def test_listing_not_modified(bridge: PythonBridge, fs: MemoryFileSystem):
	res = get(bridge, fs, "/names/", If_Modified_Since=DATE)
	assert res.status == 304
	assert res.body == b""
	assert res.header("Content-Type") is None
	assert res.header("Last-Modified") is None
	res = get(bridge, fs, "/names/", If_Modified_Since=formatHTTPDate(MODTIME - 60))
	assert res.status == 200


def test_listing_failure(
	bridge: PythonBridge, fs: MemoryFileSystem, monkeypatch: pytest.MonkeyPatch
):
	log = io.StringIO()
	monkeypatch.setattr(logging, "ERR", log)
	res = get(bridge, fs, "/locked/")
	assert res.status == 500
	assert res.text == "Error reading directory\n"
	assert res.header("X-Content-Type-Options") == "nosniff"
	assert "Error reading directory" in log.getvalue()
	assert "DIRLIST" in log.getvalue()
	# The reason is only logged
	assert "denied" not in res.text


def test_listing_root_hides_excluded(bridge: PythonBridge, fs: MemoryFileSystem):
	res = get(bridge, fs, "/")
	assert res.status == 200
	assert ".git" not in res.text
	assert ".vscode" not in res.text
	assert '<a href="hello.txt">hello.txt</a>' in res.text


# -----------------------------------------------------------------------------
#
# ERRORS
#
# -----------------------------------------------------------------------------


def test_not_found(bridge: PythonBridge, fs: MemoryFileSystem):
	for path in ("/missing", "/missing/", "/hello.txt/nested"):
		res = get(bridge, fs, path)
		assert res.status == 404, path
		assert res.text == "404 page not found\n"
		assert res.header("Content-Type") == "text/plain; charset=utf-8"
		assert res.header("X-Content-Type-Options") == "nosniff"


def test_forbidden(bridge: PythonBridge, fs: MemoryFileSystem):
	for path in ("/private/", "/private/key.txt"):
		res = get(bridge, fs, path)
		assert res.status == 403, path
		assert res.text == "403 Forbidden\n"
		assert res.header("X-Content-Type-Options") == "nosniff"


def test_excluded_paths_are_not_found(bridge: PythonBridge, fs: MemoryFileSystem):
	for path in ("/.git/config", "/.git/", "/.vscode/settings.json", "/names/.git/HEAD"):
		res = get(bridge, fs, path)
		assert res.status == 404, path
		assert res.text == "404 page not found\n"


def test_exclusions_can_be_disabled(fs: MemoryFileSystem):
	bridge = run(FileService(fs=fs, exclude=None))
	assert get(bridge, fs, "/.git/config").body == b"[core]\n"
	assert ".git/" in get(bridge, fs, "/").text


def test_custom_exclusions(fs: MemoryFileSystem):
	bridge = run(FileService(fs=fs, exclude=Exclusions(r"\.txt$")))
	assert get(bridge, fs, "/hello.txt").status == 404
	assert "hello.txt" not in get(bridge, fs, "/").text
	assert get(bridge, fs, "/.git/config").status == 200
	bridge = run(FileService(fs=fs, exclude=lambda _: _.startswith("site")))
	assert get(bridge, fs, "/site/").status == 404


def test_to_http_error():
	assert toHTTPError(FileNotFoundError()) == ("404 page not found", 404)
	assert toHTTPError(PermissionError()) == ("403 Forbidden", 403)
	assert toHTTPError(OSError("disk on fire")) == ("500 Internal Server Error", 500)


def test_internal_error():
	class BrokenFileSystem(MemoryFileSystem):
		def open(self, name: str):
			raise OSError(5, "Input/output error", name)

	bridge = run(FileService(fs=BrokenFileSystem()))
	res = bridge.get("/anything")
	assert res.status == 500
	assert res.text == "500 Internal Server Error\n"


# -----------------------------------------------------------------------------
#
# RAW REQUESTS
#
# -----------------------------------------------------------------------------


def test_raw_requests(bridge: PythonBridge, fs: MemoryFileSystem):
	exchanges = bridge.requestBytes(
		b"GET /names?x=1 HTTP/1.1\r\nHost: localhost\r\n\r\n"
		b"GET /what%3F.txt HTTP/1.1\r\nHost: localhost\r\n\r\n"
	)
	assert [_.status for _ in exchanges] == [301, 404]
	assert exchanges[0].header("Location") == "names/?x=1"
	assert exchanges[1].request.path == "/what?.txt"
	assert not fs.opened


# EOF
