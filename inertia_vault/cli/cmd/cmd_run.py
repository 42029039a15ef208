import argparse
import concurrent.futures
import dataclasses
from typing import Optional

from typing_extensions import override

from inertia_vault.cli.cmd import CliCommandHandlerBase, CommonCommandArgs, CliCommandAdapterBase
from inertia_vault.cli.return_codes import ErrorReturnCodes
from inertia_vault.pipeline.backup_run import RunResult
from inertia_vault.pipeline.executor import PipelineExecutor
from inertia_vault.pipeline.phases import ProgressEvent, RunState
from inertia_vault.types.units import ByteCount


@dataclasses.dataclass(frozen=True)
class RunCommandArgs(CommonCommandArgs):
	job_id: int


class RunCommandHandler(CliCommandHandlerBase):
	def __init__(self, args: RunCommandArgs):
		super().__init__()
		self.args = args
		self.__last_state: Optional[RunState] = None

	def __on_progress(self, event: ProgressEvent):
		if event.state != self.__last_state:
			self.__last_state = event.state
			self.logger.info('[%.1f%%] %s', event.percent, event.state.name)

	def handle(self):
		self.init_environment(self.args)

		executor = PipelineExecutor()
		executor.add_progress_callback(self.__on_progress)
		handle = executor.start(self.args.job_id)

		result: Optional[RunResult] = None
		while result is None:
			try:
				# short waits, so Ctrl-C gets delivered to the main thread
				result = handle.wait(timeout=0.5)
			except concurrent.futures.TimeoutError:
				pass
			except KeyboardInterrupt:
				self.logger.warning('Interrupted, cancelling the run')
				handle.cancel()
				result = handle.wait()

		if result.is_success:
			self.logger.info('Run #{} done: {} files, {} transferred, cost {:.2f}s'.format(
				result.run_id, result.file_count, ByteCount(result.bytes_transferred).auto_str(), result.duration_ms / 1000,
			))
			if result.snapshot is not None:
				self.logger.info('Snapshot #{} committed'.format(result.snapshot.id))
		elif result.state == RunState.cancelled:
			self.logger.warning('Run #{} cancelled'.format(result.run_id))
			ErrorReturnCodes.run_cancelled.sys_exit()
		else:
			self.logger.error('Run #{} failed: {}'.format(result.run_id, result.error))
			ErrorReturnCodes.run_failed.sys_exit()


class RunCommandAdapter(CliCommandAdapterBase):
	@property
	@override
	def command(self) -> str:
		return 'run'

	@property
	@override
	def description(self) -> str:
		return 'Run a backup job now and wait for it. Press Ctrl-C to cancel'

	@override
	def build_parser(self, parser: argparse.ArgumentParser):
		self._add_pos_argument_job_id(parser)

	@override
	def run(self, args: argparse.Namespace):
		handler = RunCommandHandler(RunCommandArgs(
			**self._get_common_args(args),
			job_id=args.job_id,
		))
		handler.handle()
