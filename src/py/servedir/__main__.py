import argparse
import sys

from . import config
from .exclusions import Exclusions
from .server import run
from .services.files import FileService
from .utils.logging import info


def main(args: list[str] | None = None) -> None:
	# Create the parser
	parser = argparse.ArgumentParser(
		prog="servedir",
		description="Serves the files of a local directory over HTTP",
		formatter_class=argparse.ArgumentDefaultsHelpFormatter,  # Shows default values in help
	)

	# Register the options
	parser.add_argument(
		"-H",
		"--host",
		action="store",
		dest="host",
		help="Specifies the address to listen on",
		default=config.HOST,
	)
	parser.add_argument(
		"-p",
		"--port",
		action="store",
		dest="port",
		type=int,
		help="Specifies the port",
		default=config.PORT,
	)
	parser.add_argument(
		"-x",
		"--exclude",
		action="append",
		dest="exclude",
		metavar="PATTERN",
		help="Regular expression of the names to hide (can be repeated), replaces the defaults",
	)
	parser.add_argument(
		"--no-exclude",
		action="store_true",
		dest="noExclude",
		help="Serves all the files, including the ones hidden by default",
	)
	parser.add_argument(
		"--index",
		action="store",
		dest="index",
		help="The file served in place of a directory listing",
		default=config.INDEX,
	)
	parser.add_argument(
		"--quiet",
		action="store_true",
		dest="quiet",
		help="Does not log requests",
	)

	# Add positional argument for the directory
	parser.add_argument(
		"root",
		metavar="DIRECTORY",
		nargs="?",
		help="The directory to serve",
		default=config.ROOT,
	)

	# Parse the options and arguments
	# If args is None, it defaults to sys.argv[1:]
	options = parser.parse_args(args=args)

	try:
		exclude: Exclusions | str | None = (
			None
			if options.noExclude
			else Exclusions(*options.exclude)
			if options.exclude
			else config.EXCLUDE
		)
		service = FileService(options.root, exclude=exclude, index=options.index)
	except ValueError as e:
		parser.error(str(e))
	info("Starting local file server", Root=str(options.root))
	run(
		service,
		host=options.host,
		port=options.port,
		logRequests=config.LOG_REQUESTS and not options.quiet,
	)


if __name__ == "__main__":
	main(sys.argv[1:])

# EOF
