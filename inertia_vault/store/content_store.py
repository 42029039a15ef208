"""
Content-addressed, reference-counted storage of file blocks, shared by all jobs.

Blocks live compressed under ``{storage_root}/blobs/{hash[:2]}/{hash}``, their
metadata and reference counts in the ``blob`` table
"""
import contextlib
import dataclasses
import threading
from pathlib import Path
from typing import List, Optional, Mapping, Iterator

from inertia_vault import logger
from inertia_vault.compressors import Compressor, CompressMethod
from inertia_vault.config.config import Config
from inertia_vault.db.access import DbAccess
from inertia_vault.db.session import DbSession
from inertia_vault.exceptions import IntegrityError
from inertia_vault.types.blob_info import BlobInfo, BlobListSummary
from inertia_vault.types.units import ByteCount
from inertia_vault.utils import blob_utils, file_utils, hash_utils


@dataclasses.dataclass(frozen=True)
class StoredBlob:
	info: BlobInfo
	data: bytes  # the compressed bytes, as stored on disk


@dataclasses.dataclass(frozen=True)
class BadBlobItem:
	blob: BlobInfo
	desc: str


@dataclasses.dataclass
class ValidateBlobsResult:
	total: int = 0
	ok: int = 0
	missing: List[BadBlobItem] = dataclasses.field(default_factory=list)  # the file of the blob is missing
	corrupted: List[BadBlobItem] = dataclasses.field(default_factory=list)  # decompress failed
	mismatched: List[BadBlobItem] = dataclasses.field(default_factory=list)  # hash or size mismatch

	@property
	def bad(self) -> int:
		return len(self.missing) + len(self.corrupted) + len(self.mismatched)


class ContentStore:
	# reference counts are shared by every job run in the process
	__lock = threading.RLock()

	def __init__(self, blob_store: Optional[Path] = None):
		self.logger = logger.get()
		self.config = Config.get()
		self.blob_store = blob_store if blob_store is not None else blob_utils.get_blob_store()

	def __blob_path(self, h: str) -> Path:
		return blob_utils.get_blob_path(h, blob_store=self.blob_store)

	@contextlib.contextmanager
	def open_locked_session(self) -> Iterator[DbSession]:
		"""
		A db session that holds the reference count lock for its whole lifetime.
		The lock is taken first, so no writer can wait on sqlite while holding it
		"""
		with self.__lock:
			with DbAccess.open_session() as session:
				yield session

	# ================================== Write side ==================================

	def put(self, data: bytes, *, compress_method: Optional[CompressMethod] = None) -> str:
		"""
		Store the given bytes, or add a reference to the identical block if it already exists

		:return: the hash of the block
		"""
		h = hash_utils.calc_bytes_hash(data)
		if self.__try_add_ref(h):
			return h

		# compress outside the lock, other runs can keep storing their blocks meanwhile
		if compress_method is None:
			compress_method = self.config.backup.get_compress_method_from_size(len(data))
		stored = Compressor.create(compress_method).compress(data)

		with self.__lock:
			# the same block might have been stored by another run during compression
			if self.__try_add_ref(h):
				return h

			blob_path = self.__blob_path(h)
			try:
				file_utils.write_file_atomic(blob_path, stored)
				with DbAccess.open_session() as session:
					session.create_and_add_blob(
						hash=h,
						compress=compress_method.name,
						raw_size=len(data),
						stored_size=len(stored),
					)
			except Exception:
				self.logger.warning('Storing blob {} failed, removing its file'.format(h))
				file_utils.remove_file_quietly(blob_path)
				raise
		return h

	def __try_add_ref(self, h: str) -> bool:
		with self.__lock:
			with DbAccess.open_session() as session:
				if (blob := session.get_blob_opt(h)) is not None:
					blob.ref_count += 1
					return True
		return False

	def retain(self, h: str) -> int:
		with self.__lock:
			with DbAccess.open_session() as session:
				return session.add_blob_ref_count(h, 1)

	def release(self, h: str) -> int:
		"""
		Drop a reference. The block itself stays until :meth:`collect_garbage` runs
		"""
		with self.__lock:
			with DbAccess.open_session() as session:
				return session.add_blob_ref_count(h, -1)

	def release_many(self, counts: Mapping[str, int], *, session: Optional[DbSession] = None):
		"""
		Drop ``counts[h]`` references of each block ``h``, in a single transaction

		:param session: join the given session instead of opening a new one.
			It should come from :meth:`open_locked_session`
		"""
		with self.__lock:
			with contextlib.ExitStack() as es:
				if session is None:
					session = es.enter_context(DbAccess.open_session())
				for h, cnt in counts.items():
					session.add_blob_ref_count(h, -cnt)

	def collect_garbage(self) -> BlobListSummary:
		"""
		Delete all blocks whose reference count has reached zero
		"""
		with self.__lock:
			with DbAccess.open_session() as session:
				blobs = session.list_unreferenced_blobs()
				infos = [BlobInfo.of(blob) for blob in blobs]
				for blob in blobs:
					session.delete_blob(blob)

			for info in infos:
				if not file_utils.remove_file_quietly(self.__blob_path(info.hash)):
					self.logger.error('Failed to remove the file of blob {}'.format(info.hash))

		summary = BlobListSummary.of(infos)
		self.logger.info('Garbage collection done, -{} blobs (size {} / {})'.format(
			summary.count, ByteCount(summary.stored_size).auto_str(), ByteCount(summary.raw_size).auto_str(),
		))
		return summary

	# ================================== Read side ===================================

	def exists(self, h: str) -> bool:
		with DbAccess.open_session() as session:
			return session.get_blob_opt(h) is not None

	def get_info(self, h: str) -> BlobInfo:
		with DbAccess.open_session() as session:
			return BlobInfo.of(session.get_blob(h))

	def get_stored(self, h: str) -> StoredBlob:
		return self.__read_stored(self.get_info(h))

	def __read_stored(self, info: BlobInfo) -> StoredBlob:
		try:
			with open(self.__blob_path(info.hash), 'rb') as f:
				data = f.read()
		except FileNotFoundError:
			raise IntegrityError(info.hash, what=IntegrityError.MISSING) from None
		if len(data) != info.stored_size:
			raise IntegrityError(info.hash, f'{len(data)} bytes', what='stored size mismatch')
		return StoredBlob(info, data)

	def get(self, h: str) -> bytes:
		"""
		:raise BlobNotFound: if the hash is unknown
		:raise IntegrityError: if the stored bytes do not match the hash
		"""
		stored = self.get_stored(h)
		return self.decode(stored.info, stored.data)

	@classmethod
	def decode(cls, info: BlobInfo, stored_data: bytes, *, hash_method=None) -> bytes:
		"""
		Decompress stored bytes and check them against the blob hash
		"""
		try:
			data = Compressor.create(info.compress).decompress(stored_data)
		except Exception as e:
			raise IntegrityError(info.hash, str(e), what=IntegrityError.UNDECODABLE) from e
		actual_hash = hash_utils.calc_bytes_hash(data, hash_method=hash_method)
		if actual_hash != info.hash:
			raise IntegrityError(info.hash, actual_hash)
		if len(data) != info.raw_size:
			raise IntegrityError(info.hash, f'{len(data)} bytes', what='raw size mismatch')
		return data

	def validate(self) -> ValidateBlobsResult:
		self.logger.info('Blob validation start')
		result = ValidateBlobsResult()
		batch_size, offset = 1000, 0
		while True:
			# files are read outside of the session, so runs are not blocked meanwhile
			with DbAccess.open_session() as session:
				blobs = [BlobInfo.of(blob) for blob in session.list_blobs(limit=batch_size, offset=offset)]
			if len(blobs) == 0:
				break
			offset += len(blobs)

			for blob in blobs:
				result.total += 1
				try:
					stored = self.__read_stored(blob)
					self.decode(blob, stored.data)
				except IntegrityError as e:
					item = BadBlobItem(blob, str(e))
					if e.what == IntegrityError.MISSING:
						result.missing.append(item)
					elif e.what == IntegrityError.UNDECODABLE:
						result.corrupted.append(item)
					else:
						result.mismatched.append(item)
				else:
					result.ok += 1

		self.logger.info('Blob validation done: total {}, ok {}, bad {}'.format(result.total, result.ok, result.bad))
		return result

