import resource
from enum import Enum
from typing import NamedTuple


class LimitType(Enum):
	Files = resource.RLIMIT_NOFILE
	Processes = resource.RLIMIT_NPROC


REASONABLE_LIMITS: dict[LimitType, int] = {
	# Each connection holds a socket, and each streamed response a file
	LimitType.Files: 10 * 10240,
	LimitType.Processes: 4096,
}


class Limit(NamedTuple):
	type: LimitType
	soft: int
	hard: int


def limit(scope: LimitType) -> Limit:
	return Limit(scope, *resource.getrlimit(scope.value))


def unlimit(
	scope: LimitType, ratio: float = 1.0, *, maximum: int | None = 0
) -> int | bool:
	"""Raises the soft limit for the given scope towards the hard limit,
	returning the new limit or `False` when it could not be changed."""
	lm = limit(scope)
	if lm.soft == resource.RLIM_INFINITY:
		return lm.soft
	try:
		hard = lm.hard if lm.hard != resource.RLIM_INFINITY else None
		target = int(lm.soft + ratio * (hard - lm.soft)) if hard else lm.soft
		# We apply reasonable limits, as for instance Darwin has really high
		# limits that will lead to OverflowErrors.
		maximum = REASONABLE_LIMITS.get(scope) if maximum == 0 else maximum
		if maximum:
			target = max(lm.soft, min(maximum, target if hard else maximum))
		resource.setrlimit(scope.value, (target, lm.hard))
		return target
	except (ValueError, OSError):
		return False


# EOF
