import errno
import os
from pathlib import Path
from typing import Set

from inertia_vault.destination.base import Destination
from inertia_vault.exceptions import DestinationError, TransientIOError, AuthorizationError, QuotaError, DestinationBlockNotFound
from inertia_vault.utils import file_utils


def _map_os_error(e: OSError, what: str) -> DestinationError:
	if e.errno in (errno.ENOSPC, getattr(errno, 'EDQUOT', errno.ENOSPC)):
		return QuotaError('{}: out of space: {}'.format(what, e))
	if e.errno in (errno.EACCES, errno.EPERM, errno.EROFS):
		return AuthorizationError('{}: permission denied: {}'.format(what, e))
	return TransientIOError('{}: {}'.format(what, e))


class LocalDestination(Destination):
	"""
	Blocks are files at ``{root}/{block_id[:2]}/{block_id}``
	"""

	def __init__(self, identifier: str, root: Path):
		super().__init__(identifier)
		self.root = root

	def __block_path(self, block_id: str) -> Path:
		return self.root / block_id[:2] / block_id

	def _write(self, block_id: str, data: bytes):
		try:
			file_utils.write_file_atomic(self.__block_path(block_id), data)
		except OSError as e:
			raise _map_os_error(e, 'write {}'.format(block_id)) from e

	def _read(self, block_id: str) -> bytes:
		try:
			with open(self.__block_path(block_id), 'rb') as f:
				return f.read()
		except FileNotFoundError:
			raise DestinationBlockNotFound(block_id) from None
		except OSError as e:
			raise _map_os_error(e, 'read {}'.format(block_id)) from e

	def _delete(self, block_id: str):
		try:
			self.__block_path(block_id).unlink(missing_ok=True)
		except OSError as e:
			raise _map_os_error(e, 'delete {}'.format(block_id)) from e

	def list(self) -> Set[str]:
		block_ids: Set[str] = set()
		if not self.root.is_dir():
			return block_ids
		try:
			for shard in os.listdir(self.root):
				shard_path = self.root / shard
				if not shard_path.is_dir():
					continue
				for name in os.listdir(shard_path):
					# skip temp files of unfinished writes
					if not name.startswith('.'):
						block_ids.add(name)
		except OSError as e:
			raise _map_os_error(e, 'list') from e
		return block_ids
