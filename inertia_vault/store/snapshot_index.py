import collections
import dataclasses
import threading
from typing import Dict, List, Optional, Sequence, Set

from inertia_vault import logger
from inertia_vault.db import schema
from inertia_vault.db.access import DbAccess
from inertia_vault.exceptions import BlobNotFound
from inertia_vault.store.content_store import ContentStore
from inertia_vault.types.snapshot_info import SnapshotInfo, SnapshotEntry
from inertia_vault.utils import collection_utils


def calc_snapshot_total_size(entries: Sequence[SnapshotEntry], raw_sizes: Dict[str, int]) -> int:
	"""
	Raw size sum of the distinct blocks referenced by the entries
	"""
	distinct_hashes = collection_utils.deduplicated_list(h for e in entries for h in e.blocks)
	return sum(raw_sizes[h] for h in distinct_hashes)


def count_block_references(entries: Sequence[SnapshotEntry]) -> Dict[str, int]:
	"""
	Each block occurrence in each entry holds one reference
	"""
	counter: Dict[str, int] = collections.Counter()
	for entry in entries:
		for h in entry.blocks:
			counter[h] += 1
	return counter


@dataclasses.dataclass(frozen=True)
class PruneUnreachableResult:
	snapshot_count: int
	released_reference_count: int
	released_hashes: List[str]  # blocks that lost at least one reference, sorted


class SnapshotIndex:
	__job_locks: Dict[int, threading.Lock] = collections.defaultdict(threading.Lock)
	__job_locks_guard = threading.Lock()

	def __init__(self):
		self.logger = logger.get()

	@classmethod
	def __get_job_lock(cls, job_id: int) -> threading.Lock:
		with cls.__job_locks_guard:
			return cls.__job_locks[job_id]

	def commit(self, job_id: int, run_id: int, entries: Sequence[SnapshotEntry]) -> SnapshotInfo:
		"""
		Persist a new snapshot atomically: all entries become visible, or none of them.
		The blocks referenced by the entries must already exist in the content store

		:raise JobNotFound: if the job no longer exists
		"""
		entries = sorted(entries, key=lambda e: e.path)
		with self.__get_job_lock(job_id):
			with DbAccess.open_session() as session:
				# the job might have been deleted by another process during the run
				session.get_job(job_id)
				hashes = collection_utils.deduplicated_list(h for e in entries for h in e.blocks)
				blobs = session.get_blobs(hashes)
				raw_sizes: Dict[str, int] = {}
				for h, blob in blobs.items():
					if blob is None:
						raise BlobNotFound(h)
					raw_sizes[h] = blob.raw_size

				snapshot = session.create_and_add_snapshot(
					job_id=job_id,
					run_id=run_id,
					file_count=len(entries),
					total_size=calc_snapshot_total_size(entries, raw_sizes),
				)
				session.flush()  # this generates snapshot.id

				files: List[schema.SnapshotFile] = []
				for entry in entries:
					file = schema.SnapshotFile(
						snapshot_id=snapshot.id,
						path=entry.path,
						content_hash=entry.content_hash,
						size=entry.size,
						mtime_ns=entry.mtime_ns,
						blocks=list(entry.blocks),
					)
					session.add(file)
					files.append(file)
				session.flush()

				info = SnapshotInfo.of(snapshot, files)

		self.logger.debug('Committed snapshot #{} for job #{}, file count {}, total size {}'.format(info.id, job_id, info.file_count, info.total_size))
		return info

	def get(self, snapshot_id: int, *, with_entries: bool = True) -> SnapshotInfo:
		with DbAccess.open_session() as session:
			snapshot = session.get_snapshot(snapshot_id)
			files = session.get_snapshot_files(snapshot.id) if with_entries else None
			return SnapshotInfo.of(snapshot, files)

	def latest(self, job_id: int) -> Optional[SnapshotInfo]:
		with DbAccess.open_session() as session:
			snapshot = session.get_latest_snapshot_opt(job_id)
			if snapshot is None:
				return None
			return SnapshotInfo.of(snapshot, session.get_snapshot_files(snapshot.id))

	def history(self, job_id: int, *, with_entries: bool = False) -> List[SnapshotInfo]:
		"""
		Reachable snapshots of the job, newest first.
		A new list is returned on every call
		"""
		with DbAccess.open_session() as session:
			return [
				SnapshotInfo.of(snapshot, session.get_snapshot_files(snapshot.id) if with_entries else None)
				for snapshot in session.list_snapshots(job_id)
			]

	def mark_unreachable(self, job_id: int) -> int:
		"""
		Hide all snapshots of the job. Their block references are kept until :meth:`prune_unreachable`
		"""
		with self.__get_job_lock(job_id):
			with DbAccess.open_session() as session:
				cnt = session.mark_job_snapshots_unreachable(job_id)
		self.logger.info('Marked {} snapshots of job #{} as unreachable'.format(cnt, job_id))
		return cnt

	def prune_unreachable(self, content_store: ContentStore) -> PruneUnreachableResult:
		"""
		Delete unreachable snapshots, and release the block references they held.
		Each snapshot is handled in its own transaction
		"""
		snapshot_cnt, ref_cnt = 0, 0
		released: Set[str] = set()
		with DbAccess.open_session() as session:
			snapshot_ids = [s.id for s in session.list_unreachable_snapshots()]

		for snapshot_id in snapshot_ids:
			with content_store.open_locked_session() as session:
				snapshot = session.get_snapshot(snapshot_id)
				entries = [SnapshotEntry.of(f) for f in session.get_snapshot_files(snapshot_id)]
				counts = count_block_references(entries)
				content_store.release_many(counts, session=session)
				session.delete_snapshot(snapshot)
			snapshot_cnt += 1
			ref_cnt += sum(counts.values())
			released.update(counts.keys())
			self.logger.debug('Pruned unreachable snapshot #{}, released {} block references'.format(snapshot_id, sum(counts.values())))

		return PruneUnreachableResult(snapshot_cnt, ref_cnt, sorted(released))
