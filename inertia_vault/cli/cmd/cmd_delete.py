import argparse
import dataclasses

from typing_extensions import override

from inertia_vault.action.delete_job_action import DeleteJobAction
from inertia_vault.cli.cmd import CliCommandHandlerBase, CommonCommandArgs, CliCommandAdapterBase


@dataclasses.dataclass(frozen=True)
class DeleteCommandArgs(CommonCommandArgs):
	job_id: int
	force: bool


class DeleteCommandHandler(CliCommandHandlerBase):
	def __init__(self, args: DeleteCommandArgs):
		super().__init__()
		self.args = args

	def handle(self):
		self.init_environment(self.args)
		job = DeleteJobAction(self.args.job_id, force=self.args.force).run()
		self.logger.info('Deleted job #{} {!r}. Run "gc" to free the blocks only it referenced'.format(job.id, job.name))


class DeleteCommandAdapter(CliCommandAdapterBase):
	@property
	@override
	def command(self) -> str:
		return 'delete'

	@property
	@override
	def description(self) -> str:
		return 'Delete a backup job and its run records'

	@override
	def build_parser(self, parser: argparse.ArgumentParser):
		self._add_pos_argument_job_id(parser)
		parser.add_argument('--force', action='store_true', help='Delete the job even if it is marked as running, e.g. after the process running it was killed')

	@override
	def run(self, args: argparse.Namespace):
		handler = DeleteCommandHandler(DeleteCommandArgs(
			**self._get_common_args(args),
			job_id=args.job_id,
			force=args.force,
		))
		handler.handle()
