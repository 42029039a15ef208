import argparse
import dataclasses
import enum
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Type

from inertia_vault import logger
from inertia_vault.cli.return_codes import ErrorReturnCodes
from inertia_vault.config.config import Config, set_config_instance
from inertia_vault.db import db_constants
from inertia_vault.db.access import DbAccess
from inertia_vault.db.migration import BadDbVersion


def enum_options(clazz: Type[enum.Enum]) -> str:
	return ', '.join([e_.name for e_ in clazz])


@dataclasses.dataclass(frozen=True)
class CommonCommandArgs:
	storage_root: Optional[Path]
	config_path: Optional[Path]


class CliCommandHandlerBase(ABC):
	def __init__(self):
		self.logger: logging.Logger = logger.get()

	@property
	def config(self) -> Config:
		return Config.get()

	# ==================== Utils ====================

	def init_environment(self, args: CommonCommandArgs, *, create: bool = False):
		if args.config_path is not None:
			try:
				config = Config.load_file(args.config_path)
			except (OSError, ValueError) as e:
				self.logger.error('Failed to load config file {!r}: {}'.format(str(args.config_path), e))
				ErrorReturnCodes.invalid_argument.sys_exit()
		else:
			config = Config.get_default()
		if args.storage_root is not None:
			config.storage_root = str(args.storage_root.as_posix())
		set_config_instance(config)

		if not create and not (dbf := config.storage_path / db_constants.DB_FILE_NAME).is_file():
			self.logger.error('Database file {!r} does not exist, create a job first'.format(dbf.as_posix()))
			ErrorReturnCodes.invalid_argument.sys_exit()

		self.logger.debug('Storage root set to {!r}'.format(config.storage_root))
		try:
			DbAccess.init(create=create)
		except BadDbVersion as e:
			self.logger.error('Load database failed: {}'.format(e))
			ErrorReturnCodes.action_failed.sys_exit()
		config.backup.hash_method = DbAccess.get_hash_method()  # use the hash method from the db


class CliCommandAdapterBase(ABC):
	@property
	@abstractmethod
	def command(self) -> str:
		raise NotImplementedError()

	@property
	@abstractmethod
	def description(self) -> str:
		raise NotImplementedError()

	@abstractmethod
	def build_parser(self, parser: argparse.ArgumentParser):
		raise NotImplementedError()

	@abstractmethod
	def run(self, args: argparse.Namespace):
		raise NotImplementedError()

	# ==================== Utils ====================

	@classmethod
	def _get_common_args(cls, args: argparse.Namespace) -> dict:
		return dict(
			storage_root=Path(args.root) if args.root is not None else None,
			config_path=Path(args.config) if args.config is not None else None,
		)

	@classmethod
	def _add_pos_argument_job_id(cls, parser: argparse.ArgumentParser):
		parser.add_argument('job_id', type=int, help='The ID of the backup job')
