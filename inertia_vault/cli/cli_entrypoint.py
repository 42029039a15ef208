import argparse
from typing import List, Dict

from inertia_vault import constants
from inertia_vault.cli.cmd import CliCommandAdapterBase
from inertia_vault.cli.cmd.cmd_create import CreateCommandAdapter
from inertia_vault.cli.cmd.cmd_delete import DeleteCommandAdapter
from inertia_vault.cli.cmd.cmd_export_logs import ExportLogsCommandAdapter
from inertia_vault.cli.cmd.cmd_gc import GcCommandAdapter
from inertia_vault.cli.cmd.cmd_list import ListCommandAdapter
from inertia_vault.cli.cmd.cmd_overview import OverviewCommandAdapter
from inertia_vault.cli.cmd.cmd_run import RunCommandAdapter
from inertia_vault.cli.cmd.cmd_serve import ServeCommandAdapter
from inertia_vault.cli.cmd.cmd_snapshots import SnapshotsCommandAdapter
from inertia_vault.cli.cmd.cmd_validate import ValidateCommandAdapter
from inertia_vault.cli.return_codes import ErrorReturnCodes
from inertia_vault.exceptions import JobNotFound, SnapshotNotFound, ConfigurationError, AlreadyRunning, InertiaVaultError
from inertia_vault.logger import get as get_logger
from inertia_vault.utils import log_utils

__all__ = ['cli_entry']


def __prepare_logger():
	logger = get_logger()
	assert len(logger.handlers) == 1
	logger.handlers[0].setFormatter(log_utils.LOG_FORMATTER_NO_FUNC)


__prepare_logger()


class CliEntrypoint:
	def __init__(self):
		self.logger = get_logger()
		self.adaptors = self.__create_command_adapters()

	@classmethod
	def __create_command_adapters(cls) -> Dict[str, CliCommandAdapterBase]:
		all_adapters: List[CliCommandAdapterBase] = [
			CreateCommandAdapter(),
			DeleteCommandAdapter(),
			ExportLogsCommandAdapter(),
			GcCommandAdapter(),
			ListCommandAdapter(),
			OverviewCommandAdapter(),
			RunCommandAdapter(),
			ServeCommandAdapter(),
			SnapshotsCommandAdapter(),
			ValidateCommandAdapter(),
		]
		adaptor_by_command = {adapter.command: adapter for adapter in all_adapters}

		if len(all_adapters) != len(adaptor_by_command):
			raise AssertionError(all_adapters, adaptor_by_command)

		return adaptor_by_command

	def main(self):
		parser = argparse.ArgumentParser(description='Inertia Vault v{} CLI tools'.format(constants.VERSION), formatter_class=argparse.ArgumentDefaultsHelpFormatter)
		parser.add_argument('-r', '--root', help='The storage root, where the database and the blocks are. Default: {!r}, or the one in the config file'.format(constants.DEFAULT_STORAGE_ROOT))
		parser.add_argument('-c', '--config', help='Path to a json config file')
		subparsers = parser.add_subparsers(title='Command', help='Available commands', dest='command')

		for adapter in self.adaptors.values():
			subparser = subparsers.add_parser(adapter.command, help=adapter.description, description=adapter.description)
			adapter.build_parser(subparser)

		args = parser.parse_args()
		if args.command is None:
			parser.print_help()
			return

		adapter = self.adaptors.get(args.command)
		if adapter is None:
			self.logger.error('Unknown command {!r}'.format(args.command))
			ErrorReturnCodes.invalid_argument.sys_exit()

		try:
			adapter.run(args)
		except JobNotFound as e:
			self.logger.error('Job #{} does not exist'.format(e.job_id))
			ErrorReturnCodes.job_not_found.sys_exit()
		except SnapshotNotFound as e:
			self.logger.error('Snapshot #{} does not exist'.format(e.snapshot_id))
			ErrorReturnCodes.snapshot_not_found.sys_exit()
		except ConfigurationError as e:
			self.logger.error('Bad configuration: {}'.format(e))
			ErrorReturnCodes.configuration_error.sys_exit()
		except AlreadyRunning as e:
			self.logger.error('Job #{} is already running'.format(e.job_id))
			ErrorReturnCodes.already_running.sys_exit()
		except InertiaVaultError as e:
			self.logger.error('{}: {}'.format(type(e).__name__, e))
			ErrorReturnCodes.action_failed.sys_exit()


def cli_entry():
	CliEntrypoint().main()
