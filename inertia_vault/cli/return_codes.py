import enum
import sys

from typing_extensions import NoReturn


class ErrorReturnCodes(enum.Enum):
	invalid_argument = 1
	argparse_error = 2  # see argparse.ArgumentParser.error
	action_failed = 3
	job_not_found = 4
	snapshot_not_found = 5
	configuration_error = 6
	already_running = 7
	run_failed = 8
	run_cancelled = 9

	def sys_exit(self) -> NoReturn:
		sys.exit(self.value)
