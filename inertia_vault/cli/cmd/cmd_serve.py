import argparse
import dataclasses
import threading

from typing_extensions import override

from inertia_vault.cli.cmd import CliCommandHandlerBase, CommonCommandArgs, CliCommandAdapterBase
from inertia_vault.pipeline.executor import PipelineExecutor
from inertia_vault.scheduler.job_scheduler import JobScheduler


@dataclasses.dataclass(frozen=True)
class ServeCommandArgs(CommonCommandArgs):
	sync_interval: float


class ServeCommandHandler(CliCommandHandlerBase):
	def __init__(self, args: ServeCommandArgs):
		super().__init__()
		self.args = args

	def handle(self):
		self.init_environment(self.args)

		executor = PipelineExecutor()
		scheduler = JobScheduler(executor)
		scheduler.start()
		self.logger.info('Scheduler started, press Ctrl-C to stop')

		stop_event = threading.Event()
		try:
			# pick up jobs created or deleted by other processes
			while not stop_event.wait(self.args.sync_interval):
				scheduler.sync_jobs()
		except KeyboardInterrupt:
			self.logger.info('Stopping')
		finally:
			scheduler.shutdown()
			executor.shutdown(cancel=True)


class ServeCommandAdapter(CliCommandAdapterBase):
	@property
	@override
	def command(self) -> str:
		return 'serve'

	@property
	@override
	def description(self) -> str:
		return 'Run scheduled jobs in the foreground'

	@override
	def build_parser(self, parser: argparse.ArgumentParser):
		parser.add_argument('--sync-interval', type=float, default=60, help='Seconds between reloading the job list')

	@override
	def run(self, args: argparse.Namespace):
		handler = ServeCommandHandler(ServeCommandArgs(
			**self._get_common_args(args),
			sync_interval=args.sync_interval,
		))
		handler.handle()
