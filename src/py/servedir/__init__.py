from .decorators import ANY, on  # NOQA: F401
from .exclusions import Exclusions  # NOQA: F401
from .fs import Directory, MemoryFileSystem  # NOQA: F401
from .http.content import serveContent  # NOQA: F401
from .http.model import HTTPRequest, HTTPRequestError, HTTPResponse  # NOQA: F401
from .model import Application, Service, mount  # NOQA: F401
from .server import run  # NOQA: F401
from .services.files import FileService  # NOQA: F401

# EOF
