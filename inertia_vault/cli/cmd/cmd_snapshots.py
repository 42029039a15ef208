import argparse
import dataclasses

from typing_extensions import override

from inertia_vault.action.list_snapshots_action import ListSnapshotsAction
from inertia_vault.cli.cmd import CliCommandHandlerBase, CommonCommandArgs, CliCommandAdapterBase
from inertia_vault.cli.cmd.cmd_list import format_timestamp_us
from inertia_vault.types.units import ByteCount


@dataclasses.dataclass(frozen=True)
class SnapshotsCommandArgs(CommonCommandArgs):
	job_id: int
	files: bool
	human: bool


class SnapshotsCommandHandler(CliCommandHandlerBase):
	def __init__(self, args: SnapshotsCommandArgs):
		super().__init__()
		self.args = args

	def handle(self):
		self.init_environment(self.args)

		snapshots = ListSnapshotsAction(self.args.job_id, with_entries=self.args.files).run()
		self.logger.info('Snapshot amount of job #{}: {}'.format(self.args.job_id, len(snapshots)))
		for snapshot in snapshots:
			values = {
				'id': snapshot.id,
				'run': snapshot.run_id,
				'date': repr(format_timestamp_us(snapshot.timestamp_us)),
				'files': snapshot.file_count,
				'total_size': ByteCount(snapshot.total_size).auto_str() if self.args.human else snapshot.total_size,
			}
			self.logger.info('%s', ' '.join([f'{k}={v}' for k, v in values.items()]))
			for entry in snapshot.entries:
				self.logger.info('  %s size=%s blocks=%s hash=%s', entry.path, entry.size, len(entry.blocks), entry.content_hash)


class SnapshotsCommandAdapter(CliCommandAdapterBase):
	@property
	@override
	def command(self) -> str:
		return 'snapshots'

	@property
	@override
	def description(self) -> str:
		return 'List snapshots of a backup job, newest first'

	@override
	def build_parser(self, parser: argparse.ArgumentParser):
		self._add_pos_argument_job_id(parser)
		parser.add_argument('-f', '--files', action='store_true', help='Show the files in each snapshot')
		parser.add_argument('-H', '--human', action='store_true', help='Prettify sizes, make it human-readable')

	@override
	def run(self, args: argparse.Namespace):
		handler = SnapshotsCommandHandler(SnapshotsCommandArgs(
			**self._get_common_args(args),
			job_id=args.job_id,
			files=args.files,
			human=args.human,
		))
		handler.handle()
