import re
from abc import ABC, abstractmethod
from typing import Set

from inertia_vault import logger
from inertia_vault.exceptions import ConfigurationError


class Destination(ABC):
	"""
	Where the blocks of a job end up.

	A successful :meth:`write` means the block can be read back by any process,
	not just from a local cache
	"""
	__BLOCK_ID_PATTERN = re.compile(r'[A-Za-z0-9_-][A-Za-z0-9._-]*')

	def __init__(self, identifier: str):
		self.identifier = identifier
		self.logger = logger.get()

	@classmethod
	def check_block_id(cls, block_id: str):
		if not isinstance(block_id, str) or cls.__BLOCK_ID_PATTERN.fullmatch(block_id) is None:
			raise ValueError('bad block id {!r}'.format(block_id))

	def write(self, block_id: str, data: bytes):
		self.check_block_id(block_id)
		self._write(block_id, data)

	def read(self, block_id: str) -> bytes:
		"""
		:raise DestinationBlockNotFound: if the block does not exist
		"""
		self.check_block_id(block_id)
		return self._read(block_id)

	def delete(self, block_id: str):
		"""
		Deleting a missing block is a no-op
		"""
		self.check_block_id(block_id)
		self._delete(block_id)

	@abstractmethod
	def _write(self, block_id: str, data: bytes):
		...

	@abstractmethod
	def _read(self, block_id: str) -> bytes:
		...

	@abstractmethod
	def _delete(self, block_id: str):
		...

	@abstractmethod
	def list(self) -> Set[str]:
		...

	def close(self):
		pass

	def __enter__(self):
		return self

	def __exit__(self, exc_type, exc_val, exc_tb):
		self.close()

	def __repr__(self) -> str:
		return '{}({!r})'.format(type(self).__name__, self.identifier)


def require(value, what: str):
	if value is None or value == '':
		raise ConfigurationError('{} is required'.format(what))
	return value
