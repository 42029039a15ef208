import functools
import json
import logging
from pathlib import Path
from typing import Optional

from mcdreforged.api.all import Serializable

from inertia_vault import constants
from inertia_vault.config.backup_config import BackupConfig
from inertia_vault.config.destination_config import DestinationConfig
from inertia_vault.config.pipeline_config import PipelineConfig


class Config(Serializable):
	debug: bool = False
	storage_root: str = constants.DEFAULT_STORAGE_ROOT
	concurrency: int = 1

	backup: BackupConfig = BackupConfig()
	pipeline: PipelineConfig = PipelineConfig()
	destination: DestinationConfig = DestinationConfig()

	# ==================== Instance getters ====================

	@classmethod
	@functools.lru_cache
	def __get_default(cls) -> 'Config':
		return Config.get_default()

	@classmethod
	def get(cls) -> 'Config':
		if _config is None:
			return cls.__get_default()
		return _config

	@classmethod
	def load_file(cls, path: Path) -> 'Config':
		with open(path, 'r', encoding='utf8') as f:
			return cls.deserialize(json.load(f))

	# ==================== Field getters ====================

	def get_effective_concurrency(self) -> int:
		if self.concurrency == 0:
			import multiprocessing
			return max(1, int(multiprocessing.cpu_count() * 0.5))
		else:
			return max(1, self.concurrency)

	@property
	def storage_path(self) -> Path:
		return Path(self.storage_root)

	@property
	def blobs_path(self) -> Path:
		return self.storage_path / 'blobs'

	@property
	def temp_path(self) -> Path:
		return self.storage_path / 'temp'

	@property
	def local_destination_path(self) -> Path:
		if self.destination.local_root is not None:
			return Path(self.destination.local_root)
		return self.storage_path / 'destinations' / 'local'


_config: Optional[Config] = None


def set_config_instance(cfg: Config):
	global _config
	_config = cfg

	from inertia_vault import logger
	logger.get().setLevel(logging.DEBUG if cfg.debug else logging.INFO)
	if cfg.debug:
		logger.get().debug('debug on')
