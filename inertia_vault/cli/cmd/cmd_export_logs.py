import argparse
import dataclasses
import sys
from pathlib import Path
from typing import Optional

from typing_extensions import override

from inertia_vault.action.export_logs_action import ExportLogsAction
from inertia_vault.cli.cmd import CliCommandHandlerBase, CommonCommandArgs, CliCommandAdapterBase


@dataclasses.dataclass(frozen=True)
class ExportLogsCommandArgs(CommonCommandArgs):
	output: Optional[Path]
	job_id: Optional[int]
	limit: Optional[int]


class ExportLogsCommandHandler(CliCommandHandlerBase):
	def __init__(self, args: ExportLogsCommandArgs):
		super().__init__()
		self.args = args

	def handle(self):
		self.init_environment(self.args)
		data = ExportLogsAction(limit=self.args.limit, job_id=self.args.job_id).run()
		if self.args.output is None:
			sys.stdout.write(data + '\n')
		else:
			with open(self.args.output, 'w', encoding='utf8') as f:
				f.write(data)
			self.logger.info('Exported logs to {!r}'.format(self.args.output.as_posix()))


class ExportLogsCommandAdapter(CliCommandAdapterBase):
	@property
	@override
	def command(self) -> str:
		return 'export-logs'

	@property
	@override
	def description(self) -> str:
		return 'Export the event log as a JSON array, newest first'

	@override
	def build_parser(self, parser: argparse.ArgumentParser):
		parser.add_argument('-o', '--output', help='The output file. Default: print to stdout')
		parser.add_argument('-j', '--job', type=int, help='Only export the entries of the given job')
		parser.add_argument('-l', '--limit', type=int, help='Export at most this many entries')

	@override
	def run(self, args: argparse.Namespace):
		handler = ExportLogsCommandHandler(ExportLogsCommandArgs(
			**self._get_common_args(args),
			output=Path(args.output) if args.output is not None else None,
			job_id=args.job,
			limit=args.limit,
		))
		handler.handle()
