import contextlib
import time
from typing import Optional, Sequence, Dict, ContextManager, TypeVar, List

from sqlalchemy import select, delete, desc, func, update
from sqlalchemy.orm import Session
from typing_extensions import TypedDict, Unpack, NotRequired

from inertia_vault.db import schema, db_constants
from inertia_vault.db.values import JobStatus
from inertia_vault.exceptions import BlobNotFound, JobNotFound, SnapshotNotFound
from inertia_vault.utils import collection_utils

_T = TypeVar('_T')


# make type checker happy
def _list_it(seq: Sequence[_T]) -> List[_T]:
	if not isinstance(seq, list):
		seq = list(seq)
	return seq


def _int_or_0(value: Optional[int]) -> int:
	if value is None:
		return 0
	return int(value)


def _now_us() -> int:
	return time.time_ns() // 1000


class DbSession:
	def __init__(self, session: Session):
		self.session = session

		# the limit in old sqlite (https://www.sqlite.org/limits.html#max_variable_number)
		self.__safe_var_limit = 999 - 20

	# ========================= General Database Operations =========================

	def add(self, obj: schema.Base):
		self.session.add(obj)

	def flush(self):
		self.session.flush()

	def expunge_all(self):
		self.session.expunge_all()

	@contextlib.contextmanager
	def no_auto_flush(self) -> ContextManager[None]:
		with self.session.no_autoflush:
			yield

	# ==================================== DbMeta ====================================

	def get_db_meta(self) -> schema.DbMeta:
		meta: Optional[schema.DbMeta] = self.session.get(schema.DbMeta, db_constants.DB_MAGIC_INDEX)
		if meta is None:
			raise ValueError('None db meta')
		return meta

	# ===================================== Blob =====================================

	class CreateBlobKwargs(TypedDict):
		hash: str
		compress: str
		raw_size: int
		stored_size: int
		ref_count: NotRequired[int]

	def create_and_add_blob(self, **kwargs: Unpack[CreateBlobKwargs]) -> schema.Blob:
		kwargs.setdefault('ref_count', 1)
		blob = schema.Blob(**kwargs)
		self.add(blob)
		return blob

	def get_blob_count(self) -> int:
		return _int_or_0(self.session.execute(select(func.count()).select_from(schema.Blob)).scalar_one())

	def get_blob_opt(self, h: str) -> Optional[schema.Blob]:
		return self.session.get(schema.Blob, h)

	def get_blob(self, h: str) -> schema.Blob:
		blob = self.get_blob_opt(h)
		if blob is None:
			raise BlobNotFound(h)
		return blob

	def get_blobs(self, hashes: List[str]) -> Dict[str, Optional[schema.Blob]]:
		"""
		:return: a dict, hash -> optional blob. All given hashes are in the dict
		"""
		result: Dict[str, Optional[schema.Blob]] = {h: None for h in hashes}
		for view in collection_utils.slicing_iterate(hashes, self.__safe_var_limit):
			for blob in self.session.execute(select(schema.Blob).where(schema.Blob.hash.in_(view))).scalars().all():
				result[blob.hash] = blob
		return result

	def list_blobs(self, limit: Optional[int] = None, offset: Optional[int] = None) -> List[schema.Blob]:
		s = select(schema.Blob).order_by(schema.Blob.hash)
		if limit is not None:
			s = s.limit(limit)
		if offset is not None:
			s = s.offset(offset)
		return _list_it(self.session.execute(s).scalars().all())

	def add_blob_ref_count(self, h: str, delta: int) -> int:
		"""
		:return: the new reference count
		"""
		blob = self.get_blob(h)
		blob.ref_count = max(0, blob.ref_count + delta)
		return blob.ref_count

	def list_unreferenced_blobs(self) -> List[schema.Blob]:
		return _list_it(self.session.execute(select(schema.Blob).where(schema.Blob.ref_count <= 0)).scalars().all())

	def get_blob_stored_size_sum(self) -> int:
		return _int_or_0(self.session.execute(func.sum(schema.Blob.stored_size).select()).scalar_one())

	def get_blob_raw_size_sum(self) -> int:
		return _int_or_0(self.session.execute(func.sum(schema.Blob.raw_size).select()).scalar_one())

	def delete_blob(self, blob: schema.Blob):
		self.session.delete(blob)

	# ===================================== Job ======================================

	class CreateJobKwargs(TypedDict):
		name: str
		source_root: str
		destination: str
		schedule: str
		incremental: bool
		compressed: bool

	def create_and_add_job(self, **kwargs: Unpack[CreateJobKwargs]) -> schema.Job:
		job = schema.Job(
			**kwargs,
			created=_now_us(),
			status=JobStatus.ready.name,
			last_run=None,
			total_runs=0,
			successful_runs=0,
			total_size=0,
			files_backed_up=0,
		)
		self.add(job)
		return job

	def get_job_opt(self, job_id: int) -> Optional[schema.Job]:
		return self.session.get(schema.Job, job_id)

	def get_job(self, job_id: int) -> schema.Job:
		job = self.get_job_opt(job_id)
		if job is None:
			raise JobNotFound(job_id)
		return job

	def get_job_by_name_opt(self, name: str) -> Optional[schema.Job]:
		return self.session.execute(select(schema.Job).where(schema.Job.name == name)).scalar_one_or_none()

	def list_jobs(self) -> List[schema.Job]:
		return _list_it(self.session.execute(select(schema.Job).order_by(desc(schema.Job.created), desc(schema.Job.id))).scalars().all())

	def get_job_count(self) -> int:
		return _int_or_0(self.session.execute(select(func.count()).select_from(schema.Job)).scalar_one())

	def delete_job(self, job: schema.Job):
		self.session.execute(delete(schema.RunRecord).where(schema.RunRecord.job_id == job.id))
		self.session.delete(job)

	# =================================== Snapshot ===================================

	def create_and_add_snapshot(self, job_id: int, run_id: int, file_count: int, total_size: int) -> schema.Snapshot:
		snapshot = schema.Snapshot(
			job_id=job_id,
			run_id=run_id,
			timestamp=_now_us(),
			file_count=file_count,
			total_size=total_size,
			reachable=True,
		)
		self.add(snapshot)
		return snapshot

	def get_snapshot(self, snapshot_id: int) -> schema.Snapshot:
		snapshot = self.session.get(schema.Snapshot, snapshot_id)
		if snapshot is None:
			raise SnapshotNotFound(snapshot_id)
		return snapshot

	def get_latest_snapshot_opt(self, job_id: int) -> Optional[schema.Snapshot]:
		s = select(schema.Snapshot).where(
			schema.Snapshot.job_id == job_id,
			schema.Snapshot.reachable.is_(True),
		).order_by(desc(schema.Snapshot.id)).limit(1)
		return self.session.execute(s).scalar_one_or_none()

	def list_snapshots(self, job_id: int) -> List[schema.Snapshot]:
		"""
		Newest first
		"""
		s = select(schema.Snapshot).where(
			schema.Snapshot.job_id == job_id,
			schema.Snapshot.reachable.is_(True),
		).order_by(desc(schema.Snapshot.id))
		return _list_it(self.session.execute(s).scalars().all())

	def list_unreachable_snapshots(self) -> List[schema.Snapshot]:
		s = select(schema.Snapshot).where(schema.Snapshot.reachable.is_(False)).order_by(schema.Snapshot.id)
		return _list_it(self.session.execute(s).scalars().all())

	def mark_job_snapshots_unreachable(self, job_id: int) -> int:
		result = self.session.execute(
			update(schema.Snapshot).
			where(schema.Snapshot.job_id == job_id, schema.Snapshot.reachable.is_(True)).
			values(reachable=False)
		)
		return result.rowcount

	def get_snapshot_files(self, snapshot_id: int) -> List[schema.SnapshotFile]:
		s = select(schema.SnapshotFile).where(schema.SnapshotFile.snapshot_id == snapshot_id).order_by(schema.SnapshotFile.path)
		return _list_it(self.session.execute(s).scalars().all())

	def get_snapshot_count(self) -> int:
		return _int_or_0(self.session.execute(
			select(func.count()).select_from(schema.Snapshot).where(schema.Snapshot.reachable.is_(True))
		).scalar_one())

	def delete_snapshot(self, snapshot: schema.Snapshot):
		self.session.execute(delete(schema.SnapshotFile).where(schema.SnapshotFile.snapshot_id == snapshot.id))
		self.session.delete(snapshot)

	# =================================== RunRecord ==================================

	def create_and_add_run_record(self, job_id: int) -> schema.RunRecord:
		record = schema.RunRecord(
			job_id=job_id,
			started=_now_us(),
			ended=None,
			outcome=None,
			bytes_transferred=0,
			file_count=0,
			snapshot_id=None,
			error=None,
		)
		self.add(record)
		return record

	def get_run_record_opt(self, run_id: int) -> Optional[schema.RunRecord]:
		return self.session.get(schema.RunRecord, run_id)

	def get_run_record(self, run_id: int) -> schema.RunRecord:
		record = self.get_run_record_opt(run_id)
		if record is None:
			raise ValueError('run record #{} not found'.format(run_id))
		return record

	def list_run_records(self, job_id: int, limit: Optional[int] = None) -> List[schema.RunRecord]:
		s = select(schema.RunRecord).where(schema.RunRecord.job_id == job_id).order_by(desc(schema.RunRecord.id))
		if limit is not None:
			s = s.limit(limit)
		return _list_it(self.session.execute(s).scalars().all())

	# =================================== LogEntry ===================================

	def create_and_add_log_entry(self, level: str, message: str, job_id: Optional[int]) -> schema.LogEntry:
		entry = schema.LogEntry(timestamp=_now_us(), level=level, message=message, job_id=job_id)
		self.add(entry)
		return entry

	def list_log_entries(self, *, limit: Optional[int] = None, job_id: Optional[int] = None) -> List[schema.LogEntry]:
		"""
		Newest first
		"""
		s = select(schema.LogEntry)
		if job_id is not None:
			s = s.where(schema.LogEntry.job_id == job_id)
		s = s.order_by(desc(schema.LogEntry.timestamp), desc(schema.LogEntry.id))
		if limit is not None:
			s = s.limit(limit)
		return _list_it(self.session.execute(s).scalars().all())
