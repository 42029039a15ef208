import dataclasses
from pathlib import Path
from typing import IO, Optional, TYPE_CHECKING

if TYPE_CHECKING:
	from inertia_vault.types.hash_method import Hasher, HashMethod


def create_hasher(*, hash_method: Optional['HashMethod'] = None) -> 'Hasher':
	if hash_method is None:
		from inertia_vault.db.access import DbAccess
		hash_method = DbAccess.get_hash_method()
	return hash_method.value.create_hasher()


_READ_BUF_SIZE = 128 * 1024


@dataclasses.dataclass(frozen=True)
class SizeAndHash:
	size: int
	hash: str


def calc_reader_size_and_hash(
		file_obj: IO[bytes], *,
		buf_size: int = _READ_BUF_SIZE,
		hash_method: Optional['HashMethod'] = None,
) -> SizeAndHash:
	hasher = create_hasher(hash_method=hash_method)
	size = 0
	while buf := file_obj.read(buf_size):
		hasher.update(buf)
		size += len(buf)
	return SizeAndHash(size, hasher.hexdigest())


def calc_file_size_and_hash(path: Path, **kwargs) -> SizeAndHash:
	with open(path, 'rb') as f:
		return calc_reader_size_and_hash(f, **kwargs)


def calc_file_hash(path: Path, **kwargs) -> str:
	return calc_file_size_and_hash(path, **kwargs).hash


def calc_bytes_hash(buf: bytes, *, hash_method: Optional['HashMethod'] = None) -> str:
	hasher = create_hasher(hash_method=hash_method)
	hasher.update(buf)
	return hasher.hexdigest()
