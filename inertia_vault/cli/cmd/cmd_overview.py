import argparse
import dataclasses

from typing_extensions import override

from inertia_vault.action.get_overview_action import GetOverviewAction
from inertia_vault.cli.cmd import CliCommandHandlerBase, CommonCommandArgs, CliCommandAdapterBase
from inertia_vault.db.access import DbAccess
from inertia_vault.types.units import ByteCount


@dataclasses.dataclass(frozen=True)
class OverviewCommandArgs(CommonCommandArgs):
	pass


class OverviewCommandHandler(CliCommandHandlerBase):
	def __init__(self, args: OverviewCommandArgs):
		super().__init__()
		self.args = args

	def handle(self):
		self.init_environment(self.args)
		result = GetOverviewAction().run()
		self.logger.info('DB version: %s', result.db_version)
		self.logger.info('DB path: %s', DbAccess.get_db_file_path())
		self.logger.info('DB file size: %s (%s)', result.db_file_size, ByteCount(result.db_file_size).auto_str())
		self.logger.info('Hash method: %s', result.hash_method)
		self.logger.info('Job count: %s', result.job_count)
		self.logger.info('Total runs: %s', result.total_runs)
		self.logger.info('Success rate: %.1f%%', result.success_rate)
		self.logger.info('Total transferred size: %s (%s)', result.total_size, ByteCount(result.total_size).auto_str())
		self.logger.info('Snapshot count: %s', result.snapshot_count)
		self.logger.info('Blob count: %s', result.blob_count)
		self.logger.info('Blob stored size sum: %s (%s)', result.blob_stored_size_sum, ByteCount(result.blob_stored_size_sum).auto_str())
		self.logger.info('Blob raw size sum: %s (%s)', result.blob_raw_size_sum, ByteCount(result.blob_raw_size_sum).auto_str())


class OverviewCommandAdapter(CliCommandAdapterBase):
	@property
	@override
	def command(self) -> str:
		return 'overview'

	@property
	@override
	def description(self) -> str:
		return 'Show overview statistics of all jobs and the content store'

	@override
	def build_parser(self, parser: argparse.ArgumentParser):
		pass

	@override
	def run(self, args: argparse.Namespace):
		handler = OverviewCommandHandler(OverviewCommandArgs(
			**self._get_common_args(args),
		))
		handler.handle()
