import argparse
import dataclasses

from typing_extensions import override

from inertia_vault.action.create_job_action import CreateJobAction
from inertia_vault.cli.cmd import CliCommandHandlerBase, CommonCommandArgs, CliCommandAdapterBase, enum_options
from inertia_vault.cli.return_codes import ErrorReturnCodes
from inertia_vault.db.values import JobSchedule


@dataclasses.dataclass(frozen=True)
class CreateCommandArgs(CommonCommandArgs):
	name: str
	source: str
	destination: str
	schedule: str
	full: bool
	no_compress: bool


class CreateCommandHandler(CliCommandHandlerBase):
	def __init__(self, args: CreateCommandArgs):
		super().__init__()
		self.args = args

	def handle(self):
		try:
			schedule = JobSchedule[self.args.schedule]
		except KeyError:
			self.logger.error('Bad schedule {!r}, should be one of {}'.format(self.args.schedule, enum_options(JobSchedule)))
			ErrorReturnCodes.invalid_argument.sys_exit()

		self.init_environment(self.args, create=True)
		job = CreateJobAction(
			self.args.name, self.args.source, self.args.destination,
			schedule=schedule,
			incremental=not self.args.full,
			compressed=not self.args.no_compress,
		).run()
		self.logger.info('Created job #{} {!r}'.format(job.id, job.name))


class CreateCommandAdapter(CliCommandAdapterBase):
	@property
	@override
	def command(self) -> str:
		return 'create'

	@property
	@override
	def description(self) -> str:
		return 'Create a backup job'

	@override
	def build_parser(self, parser: argparse.ArgumentParser):
		parser.add_argument('name', help='The unique name of the job')
		parser.add_argument('source', help='The directory to back up')
		parser.add_argument('destination', help='Where the blocks go. Options: "local", "file:///abs/path", "s3://bucket/prefix", "dropbox:///folder"')
		parser.add_argument('-s', '--schedule', default=JobSchedule.manual.name, help='The schedule of the job. Options: {}'.format(enum_options(JobSchedule)))
		parser.add_argument('--full', action='store_true', help='Always do full backups instead of incremental ones')
		parser.add_argument('--no-compress', action='store_true', help='Store and transfer blocks uncompressed')

	@override
	def run(self, args: argparse.Namespace):
		handler = CreateCommandHandler(CreateCommandArgs(
			**self._get_common_args(args),
			name=args.name,
			source=args.source,
			destination=args.destination,
			schedule=args.schedule,
			full=args.full,
			no_compress=args.no_compress,
		))
		handler.handle()
