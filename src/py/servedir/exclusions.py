import re
from typing import Callable, Iterable, Pattern, TypeAlias

# A predicate telling if a path segment (a file or directory name) is
# excluded from listings and lookups.
TExclude: TypeAlias = Callable[[str], bool]

# Editor and version control metadata is never served by default.
DEFAULT_PATTERNS: tuple[str, ...] = (r"^\.git", r"^\.vscode", r"^\.idea")


class Exclusions:
	"""An immutable, ordered set of regular expressions matched against
	individual path segments. Instances are created once and then shared
	(read-only) by all requests."""

	__slots__ = ["patterns"]

	@staticmethod
	def Parse(text: str | None, separator: str = ",") -> "Exclusions":
		"""Parses a list of patterns like `^\\.git,^\\.cache`."""
		return Exclusions(
			*(_.strip() for _ in (text or "").split(separator) if _.strip())
		)

	def __init__(self, *patterns: str | Pattern[str]):
		try:
			self.patterns: tuple[Pattern[str], ...] = tuple(
				_ if isinstance(_, re.Pattern) else re.compile(_) for _ in patterns
			)
		except re.error as e:
			raise ValueError(f"Exclusion pattern is malformed: {e}") from e

	def matches(self, name: str) -> bool:
		"""Tells if the given path segment is excluded."""
		return any(_.search(name) for _ in self.patterns)

	def hides(self, path: str) -> bool:
		"""Tells if any segment of the `/`-separated path is excluded."""
		return hides(self, path)

	def __call__(self, name: str) -> bool:
		return self.matches(name)

	def __bool__(self) -> bool:
		return bool(self.patterns)

	def __repr__(self) -> str:
		return f"(Exclusions {' '.join(repr(_.pattern) for _ in self.patterns)})"


def exclusions(
	value: "Exclusions | TExclude | Iterable[str] | str | None",
) -> TExclude | None:
	"""Normalizes the different ways of specifying exclusions into a
	predicate, `None` meaning nothing is excluded."""
	if value is None:
		return None
	elif isinstance(value, str):
		return Exclusions.Parse(value) or None
	elif isinstance(value, Exclusions):
		return value or None
	elif callable(value):
		return value
	else:
		return Exclusions(*value) or None


def hides(exclude: TExclude | None, path: str) -> bool:
	"""Tells if any segment of the `/`-separated path is excluded."""
	return exclude is not None and any(
		exclude(_) for _ in path.split("/") if _ and _ not in (".", "..")
	)


# EOF
