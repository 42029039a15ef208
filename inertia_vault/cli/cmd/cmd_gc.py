import argparse
import dataclasses

from typing_extensions import override

from inertia_vault.action.collect_garbage_action import CollectGarbageAction
from inertia_vault.cli.cmd import CliCommandHandlerBase, CommonCommandArgs, CliCommandAdapterBase
from inertia_vault.types.units import ByteCount


@dataclasses.dataclass(frozen=True)
class GcCommandArgs(CommonCommandArgs):
	pass


class GcCommandHandler(CliCommandHandlerBase):
	def __init__(self, args: GcCommandArgs):
		super().__init__()
		self.args = args

	def handle(self):
		self.init_environment(self.args)
		result = CollectGarbageAction().run()
		self.logger.info('Pruned snapshots: %s', result.pruned_snapshot_count)
		self.logger.info('Released block references: %s', result.released_reference_count)
		self.logger.info('Deleted blobs: %s, stored size %s, raw size %s', result.deleted_blobs.count, ByteCount(result.deleted_blobs.stored_size).auto_str(), ByteCount(result.deleted_blobs.raw_size).auto_str())


class GcCommandAdapter(CliCommandAdapterBase):
	@property
	@override
	def command(self) -> str:
		return 'gc'

	@property
	@override
	def description(self) -> str:
		return 'Prune snapshots of deleted jobs, and delete blocks that are no longer referenced'

	@override
	def build_parser(self, parser: argparse.ArgumentParser):
		pass

	@override
	def run(self, args: argparse.Namespace):
		handler = GcCommandHandler(GcCommandArgs(
			**self._get_common_args(args),
		))
		handler.handle()
