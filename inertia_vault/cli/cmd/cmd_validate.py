import argparse
import dataclasses

from typing_extensions import override

from inertia_vault.action.validate_blobs_action import ValidateBlobsAction
from inertia_vault.cli.cmd import CliCommandHandlerBase, CommonCommandArgs, CliCommandAdapterBase
from inertia_vault.cli.return_codes import ErrorReturnCodes


@dataclasses.dataclass(frozen=True)
class ValidateCommandArgs(CommonCommandArgs):
	pass


class ValidateCommandHandler(CliCommandHandlerBase):
	def __init__(self, args: ValidateCommandArgs):
		super().__init__()
		self.args = args

	def handle(self):
		self.init_environment(self.args)
		result = ValidateBlobsAction().run()
		self.logger.info('Validated blobs: total %s, ok %s', result.total, result.ok)
		self.logger.info('Missing: %s, corrupted: %s, mismatched: %s', len(result.missing), len(result.corrupted), len(result.mismatched))
		if result.bad > 0:
			ErrorReturnCodes.action_failed.sys_exit()


class ValidateCommandAdapter(CliCommandAdapterBase):
	@property
	@override
	def command(self) -> str:
		return 'validate'

	@property
	@override
	def description(self) -> str:
		return 'Re-read every block in the content store and check its hash'

	@override
	def build_parser(self, parser: argparse.ArgumentParser):
		pass

	@override
	def run(self, args: argparse.Namespace):
		handler = ValidateCommandHandler(ValidateCommandArgs(
			**self._get_common_args(args),
		))
		handler.handle()
