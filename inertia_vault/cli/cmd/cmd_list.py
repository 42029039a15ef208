import argparse
import dataclasses
import datetime

from typing_extensions import override

from inertia_vault.action.get_job_action import ListJobsAction
from inertia_vault.cli.cmd import CliCommandHandlerBase, CommonCommandArgs, CliCommandAdapterBase
from inertia_vault.types.units import ByteCount


def format_timestamp_us(timestamp_us: int) -> str:
	return datetime.datetime.fromtimestamp(timestamp_us / 1e6).strftime('%Y-%m-%d %H:%M:%S')


@dataclasses.dataclass(frozen=True)
class ListCommandArgs(CommonCommandArgs):
	human: bool


class ListCommandHandler(CliCommandHandlerBase):
	def __init__(self, args: ListCommandArgs):
		super().__init__()
		self.args = args

	def handle(self):
		self.init_environment(self.args)

		jobs = ListJobsAction().run()
		self.logger.info('Job amount: {}'.format(len(jobs)))
		for job in jobs:
			values = {
				'id': job.id,
				'name': repr(job.name),
				'source': repr(job.source_root),
				'destination': repr(job.destination),
				'schedule': job.schedule.name,
				'status': job.status.name,
				'runs': '{}/{}'.format(job.successful_runs, job.total_runs),
				'total_size': ByteCount(job.total_size).auto_str() if self.args.human else job.total_size,
				'last_run': repr(format_timestamp_us(job.last_run_us)) if job.last_run_us is not None else None,
			}
			self.logger.info('%s', ' '.join([f'{k}={v}' for k, v in values.items()]))


class ListCommandAdapter(CliCommandAdapterBase):
	@property
	@override
	def command(self) -> str:
		return 'list'

	@property
	@override
	def description(self) -> str:
		return 'List backup jobs'

	@override
	def build_parser(self, parser: argparse.ArgumentParser):
		parser.add_argument('-H', '--human', action='store_true', help='Prettify sizes, make it human-readable')

	@override
	def run(self, args: argparse.Namespace):
		handler = ListCommandHandler(ListCommandArgs(
			**self._get_common_args(args),
			human=args.human,
		))
		handler.handle()
