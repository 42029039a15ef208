import shutil
import tempfile
import threading
import unittest
from pathlib import Path
from typing import Callable, Dict, Optional, Set

from typing_extensions import override

from inertia_vault import logger
from inertia_vault.config.config import Config, set_config_instance
from inertia_vault.db.access import DbAccess
from inertia_vault.db.values import JobSchedule
from inertia_vault.action.create_job_action import CreateJobAction
from inertia_vault.destination.base import Destination
from inertia_vault.destination.local import LocalDestination
from inertia_vault.types.job_info import JobInfo


class VaultTestCase(unittest.TestCase):
	"""
	Every test gets its own storage root and source directory in a temp directory
	"""

	def __init__(self, *args, **kwargs):
		super().__init__(*args, **kwargs)
		self.logger = logger.get()

	@override
	def setUp(self):
		self.test_root = Path(tempfile.mkdtemp(prefix='iv_test_'))
		self.source_root = self.test_root / 'source'
		self.source_root.mkdir()
		self.dest_root = self.test_root / 'dest'

		# every section is given explicitly, so tests never modify the shared defaults
		config = Config.deserialize({
			'storage_root': str(self.test_root / 'iv_files'),
			'backup': {},
			'pipeline': {'retry_backoff': '1ms', 'retry_backoff_max': '10ms', 'timeouts': {}},
			'destination': {'s3': {}, 'dropbox': {}},
		})
		set_config_instance(config)
		DbAccess.init(create=True)

	@override
	def tearDown(self):
		DbAccess.shutdown()
		set_config_instance(Config.get_default())
		shutil.rmtree(self.test_root, ignore_errors=True)

	@property
	def config(self) -> Config:
		return Config.get()

	def write_source_file(self, path: str, content: bytes) -> Path:
		file_path = self.source_root / path
		file_path.parent.mkdir(parents=True, exist_ok=True)
		file_path.write_bytes(content)
		return file_path

	def create_job(self, name: str = 'test', **kwargs) -> JobInfo:
		kwargs.setdefault('schedule', JobSchedule.manual)
		return CreateJobAction(name, str(self.source_root), self.dest_root.as_uri(), **kwargs).run()


class FakeDestination(Destination):
	"""
	A local destination whose calls can be intercepted by the test
	"""

	def __init__(self, root: Path):
		super().__init__('fake:' + root.as_posix())
		self.backend = LocalDestination(self.identifier, root)
		self.calls: Dict[str, int] = {'write': 0, 'read': 0, 'delete': 0, 'list': 0}
		self.on_write: Optional[Callable[[str, bytes], Optional[bytes]]] = None  # may return the bytes to write instead
		self.on_read: Optional[Callable[[str, bytes], bytes]] = None
		self.on_list: Optional[Callable[[], None]] = None
		self.lock = threading.Lock()

	def __count(self, what: str):
		with self.lock:
			self.calls[what] += 1

	def _write(self, block_id: str, data: bytes):
		self.__count('write')
		if self.on_write is not None:
			replaced = self.on_write(block_id, data)
			if replaced is not None:
				data = replaced
		self.backend.write(block_id, data)

	def _read(self, block_id: str) -> bytes:
		self.__count('read')
		data = self.backend.read(block_id)
		if self.on_read is not None:
			data = self.on_read(block_id, data)
		return data

	def _delete(self, block_id: str):
		self.__count('delete')
		self.backend.delete(block_id)

	def list(self) -> Set[str]:
		self.__count('list')
		if self.on_list is not None:
			self.on_list()
		return self.backend.list()
