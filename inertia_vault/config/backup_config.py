from typing import List

from mcdreforged.api.utils import Serializable

from inertia_vault.compressors import CompressMethod
from inertia_vault.types.hash_method import HashMethod


class BackupConfig(Serializable):
	ignore_patterns: List[str] = [
		'**/*.tmp',
		'**/.DS_Store',
	]
	hash_method: HashMethod = HashMethod.sha256
	compress_method: CompressMethod = CompressMethod.zstd
	compress_threshold: int = 64
	chunk_size: int = 4 * 1024 * 1024
	always_hash: bool = False  # hash files with unchanged size and mtime as well

	def get_compress_method_from_size(self, block_size: int, *, compressed: bool = True) -> CompressMethod:
		if not compressed or block_size < self.compress_threshold:
			return CompressMethod.plain
		else:
			return self.compress_method

	def on_deserialization(self, **kwargs):
		if self.chunk_size <= 0:
			raise ValueError('chunk_size should be positive, found {}'.format(self.chunk_size))
