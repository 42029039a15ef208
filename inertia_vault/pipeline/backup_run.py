import collections
import dataclasses
import functools
import time
from pathlib import Path
from typing import Optional, List, Dict, Callable, TypeVar

from inertia_vault import logger, constants
from inertia_vault.config.config import Config
from inertia_vault.db.access import DbAccess
from inertia_vault.db.values import RunOutcome
from inertia_vault.destination.base import Destination
from inertia_vault.destination.factory import create_destination
from inertia_vault.event_log import EventLog
from inertia_vault.exceptions import IntegrityError, DestinationBlockNotFound
from inertia_vault.pipeline.change_detector import ChangeDetector
from inertia_vault.pipeline.phases import RunPhase, RunState, RunControl, RunCancelled, ProgressReporter
from inertia_vault.store.content_store import ContentStore
from inertia_vault.store.snapshot_index import SnapshotIndex
from inertia_vault.types.changeset import Changeset, ScanResult, ScannedFile
from inertia_vault.types.documents import SnapshotManifest, SnapshotEntryDocument
from inertia_vault.types.job_info import JobInfo
from inertia_vault.types.snapshot_info import SnapshotInfo, SnapshotEntry
from inertia_vault.types.units import ByteCount
from inertia_vault.utils import hash_utils, retry_utils, collection_utils

_T = TypeVar('_T')
DestinationFactory = Callable[[str], Destination]


@dataclasses.dataclass(frozen=True)
class RunResult:
	job_id: int
	run_id: int
	state: RunState  # one of the terminal states
	snapshot: Optional[SnapshotInfo]  # the committed snapshot, on success
	changeset: Optional[Changeset]
	bytes_transferred: int
	file_count: int  # added and modified files that were stored
	duration_ms: int
	error: Optional[Exception] = None

	@property
	def outcome(self) -> RunOutcome:
		return {
			RunState.completed: RunOutcome.success,
			RunState.failed: RunOutcome.failed,
			RunState.cancelled: RunOutcome.cancelled,
		}[self.state]

	@property
	def is_success(self) -> bool:
		return self.state == RunState.completed


def get_manifest_block_id(job_id: int, run_id: int) -> str:
	return '{}.{}.{}'.format(constants.MANIFEST_BLOCK_PREFIX, job_id, run_id)


def make_manifest(job: JobInfo, run_id: int, entries: List[SnapshotEntry]) -> SnapshotManifest:
	return SnapshotManifest(
		job_id=job.id,
		job_name=job.name,
		run_id=run_id,
		hash_method=DbAccess.get_hash_method().name,
		entries=[SnapshotEntryDocument.model_validate(e, from_attributes=True) for e in entries],
	)


class BackupRun:
	"""
	A single run of a job, from scanning to the snapshot commit, in the calling thread.

	Every block reference taken during the run is recorded, and released again if the run
	does not end with a committed snapshot
	"""

	def __init__(
			self, job: JobInfo, run_id: int, *,
			control: RunControl,
			progress: ProgressReporter,
			event_log: EventLog,
			content_store: Optional[ContentStore] = None,
			snapshot_index: Optional[SnapshotIndex] = None,
			destination_factory: DestinationFactory = create_destination,
	):
		self.logger = logger.get()
		self.config = Config.get()
		self.job = job
		self.run_id = run_id
		self.control = control
		self.progress = progress
		self.event_log = event_log
		self.content_store = content_store if content_store is not None else ContentStore()
		self.snapshot_index = snapshot_index if snapshot_index is not None else SnapshotIndex()
		self.destination_factory = destination_factory
		self.retry_policy = retry_utils.RetryPolicy.of_config(self.config.pipeline)

		self.__retained: Dict[str, int] = collections.Counter()  # references to release on rollback
		self.__state = RunState.idle
		self.__phase: Optional[RunPhase] = None
		self.__changeset: Optional[Changeset] = None
		self.__bytes_transferred = 0
		self.__stored_file_count = 0
		self.__destination: Optional[Destination] = None

	@property
	def state(self) -> RunState:
		return self.__state

	def __get_phase_timeout(self, phase: RunPhase) -> float:
		return getattr(self.config.pipeline.timeouts, phase.name).value

	def __enter_phase(self, phase: RunPhase):
		self.__phase = phase
		self.__state = RunState.of_phase(phase)
		if phase.is_network:
			self.control.begin_phase(phase, None)
		else:
			self.control.begin_phase(phase, self.__get_phase_timeout(phase))
		self.progress.enter(phase)
		self.logger.debug('Job #{} run #{} entering phase {}'.format(self.job.id, self.run_id, phase.name))

	# ================================== Destination ==================================

	def __backoff_sleep(self, delay: float):
		if self.control.cancel_event.wait(delay):
			raise RunCancelled()

	def __call_destination(self, what: str, func: Callable[[], _T]) -> _T:
		timeout = self.__get_phase_timeout(self.__phase)
		return retry_utils.call_with_retry(
			lambda: retry_utils.call_with_timeout(func, timeout, what=what),
			self.retry_policy,
			what='{} ({})'.format(what, self.job.destination),
			logger=self.logger,
			sleep=self.__backoff_sleep,
		)

	# ==================================== Phases =====================================

	def __store_file(self, file: ScannedFile, expected_hash: Optional[str], on_bytes: Callable[[int], None]) -> SnapshotEntry:
		chunk_size = self.config.backup.chunk_size
		hasher = hash_utils.create_hasher()
		blocks: List[str] = []
		size = 0
		with open(file.full_path, 'rb') as f:
			while True:
				self.control.check()
				chunk = f.read(chunk_size)
				if len(chunk) == 0 and len(blocks) > 0:
					break
				# an empty file is made of a single empty block
				compress_method = self.config.backup.get_compress_method_from_size(len(chunk), compressed=self.job.compressed)
				h = self.content_store.put(chunk, compress_method=compress_method)
				self.__retained[h] += 1
				blocks.append(h)
				hasher.update(chunk)
				size += len(chunk)
				on_bytes(len(chunk))
				if len(chunk) < chunk_size:
					break

		content_hash = hasher.hexdigest()
		if expected_hash is not None and expected_hash != content_hash:
			self.logger.warning('File {!r} changed during the backup, hash {} -> {}'.format(file.path, expected_hash, content_hash))
		return SnapshotEntry(file.path, content_hash, size, file.mtime_ns, tuple(blocks))

	def __compress(self, scan_result: ScanResult, hashes: Dict[str, str], changeset: Changeset, previous: Optional[SnapshotInfo]) -> List[SnapshotEntry]:
		files = scan_result.get_file_by_path()
		prev_entries = previous.get_entry_by_path() if previous is not None else {}
		changed_paths = set(changeset.get_changed_paths())
		total_bytes = sum(files[p].size for p in changed_paths)
		done_bytes = 0

		def on_bytes(n: int):
			nonlocal done_bytes
			done_bytes += n
			self.progress.update(RunPhase.compressing, done_bytes, total_bytes)

		entries: List[SnapshotEntry] = []
		for file in scan_result.files:
			self.control.check()
			if file.path in changed_paths:
				try:
					entries.append(self.__store_file(file, hashes.get(file.path), on_bytes))
				except FileNotFoundError:
					self.logger.warning('File {!r} disappeared before it could be stored, skipped'.format(file.path))
				else:
					self.__stored_file_count += 1
			else:
				# unchanged, the new snapshot references the same blocks again
				prev = prev_entries[file.path]
				for h in prev.blocks:
					self.content_store.retain(h)
					self.__retained[h] += 1
				entries.append(prev)
		return entries

	def __check_destination_block(self, h: str):
		"""
		:raise IntegrityError: if the destination does not hold the exact block
		"""
		info = self.content_store.get_info(h)
		data = self.__call_destination('read {}'.format(h), functools.partial(self.__destination.read, h))
		ContentStore.decode(info, data)

	def __transfer(self, entries: List[SnapshotEntry], previous: Optional[SnapshotInfo]) -> List[str]:
		"""
		:return: hashes of the blocks written in this run
		"""
		listed = self.__call_destination('list', self.__destination.list)
		referenced = collection_utils.deduplicated_list(h for e in entries for h in e.blocks)
		# blocks of the previous snapshot were verified at this destination before it was committed.
		# Other listed blocks might be left over by a failed run, so they are read back first
		verified = set(h for e in previous.entries for h in e.blocks) if previous is not None else set()
		to_check = [h for h in referenced if h in listed and h not in verified]
		to_write = [h for h in referenced if h not in listed]
		self.logger.debug('Job #{} run #{}: {} blocks referenced, {} to check, {} to transfer'.format(self.job.id, self.run_id, len(referenced), len(to_check), len(to_write)))

		done = 0
		for h in to_check:
			self.control.check()
			try:
				self.__check_destination_block(h)
			except (IntegrityError, DestinationBlockNotFound) as e:
				self.logger.warning('Block {} at {} is unusable ({}), transferring it again'.format(h, self.job.destination, e))
				to_write.append(h)
			done += 1
			self.progress.update(RunPhase.transferring, done, len(to_check) + len(to_write))

		for h in to_write:
			self.control.check()
			stored = self.content_store.get_stored(h)
			self.__call_destination('write {}'.format(h), functools.partial(self.__destination.write, h, stored.data))
			self.__bytes_transferred += len(stored.data)
			done += 1
			self.progress.update(RunPhase.transferring, done, len(to_check) + len(to_write))
		return to_write

	def __verify(self, transferred: List[str]):
		for i, h in enumerate(transferred):
			self.control.check()
			self.__check_destination_block(h)
			self.progress.update(RunPhase.verifying, i + 1, len(transferred))

	def __write_manifest(self, entries: List[SnapshotEntry]):
		self.control.check()
		block_id = get_manifest_block_id(self.job.id, self.run_id)
		manifest = make_manifest(self.job, self.run_id, entries).to_bytes()
		self.__call_destination('write {}'.format(block_id), lambda: self.__destination.write(block_id, manifest))
		read_back = self.__call_destination('read {}'.format(block_id), lambda: self.__destination.read(block_id))
		if read_back != manifest:
			raise IntegrityError(block_id, '{} bytes'.format(len(read_back)))
		self.__bytes_transferred += len(manifest)

	def __run_phases(self) -> SnapshotInfo:
		detector = ChangeDetector(control=self.control)
		source_root = Path(self.job.source_root)
		self.__destination = self.destination_factory(self.job.destination)

		self.__enter_phase(RunPhase.scanning)
		scan_result = detector.scan(source_root)
		previous = self.snapshot_index.latest(self.job.id)

		self.__enter_phase(RunPhase.hashing)
		candidates = detector.select_hash_candidates(scan_result, previous, incremental=self.job.incremental)
		hashes = detector.hash_files(candidates, on_progress=lambda done, total: self.progress.update(RunPhase.hashing, done, total))

		self.__enter_phase(RunPhase.diffing)
		changeset = detector.compute(scan_result, hashes, previous, incremental=self.job.incremental)
		self.__changeset = changeset
		self.logger.debug('Job #{} run #{} changeset: added {}, modified {}, deleted {}, unchanged {}'.format(
			self.job.id, self.run_id, len(changeset.added), len(changeset.modified), len(changeset.deleted), len(changeset.unchanged),
		))

		self.__enter_phase(RunPhase.compressing)
		entries = self.__compress(scan_result, hashes, changeset, previous)

		self.__enter_phase(RunPhase.transferring)
		transferred = self.__transfer(entries, previous)

		self.__enter_phase(RunPhase.verifying)
		self.__verify(transferred)
		self.__write_manifest(entries)

		self.control.check()
		snapshot = self.snapshot_index.commit(self.job.id, self.run_id, entries)
		# the references now belong to the snapshot
		self.__retained.clear()
		return snapshot

	# ==================================== Ending =====================================

	def __rollback(self):
		if len(self.__retained) == 0:
			return
		try:
			self.content_store.release_many(self.__retained)
		except Exception:
			self.logger.exception('Failed to release {} block references of job #{} run #{}'.format(sum(self.__retained.values()), self.job.id, self.run_id))
		else:
			self.logger.debug('Released {} block references of job #{} run #{}'.format(sum(self.__retained.values()), self.job.id, self.run_id))
			self.__retained.clear()

	def __finalize(self, result: RunResult):
		ended = time.time_ns() // 1000
		with DbAccess.open_session() as session:
			# both are gone if the job was deleted by another process during the run
			record = session.get_run_record_opt(self.run_id)
			if record is not None:
				record.ended = ended
				record.outcome = result.outcome.name
				record.bytes_transferred = result.bytes_transferred
				record.file_count = result.file_count
				record.snapshot_id = result.snapshot.id if result.snapshot is not None else None
				record.error = str(result.error) if result.error is not None else None

			job = session.get_job_opt(self.job.id)
			if job is not None:
				job.status = result.outcome.to_job_status().name
				job.last_run = ended
				job.total_runs += 1
				if result.is_success:
					job.successful_runs += 1
					job.total_size += result.bytes_transferred
					job.files_backed_up += result.file_count

		if result.state == RunState.completed:
			cs = result.changeset
			self.event_log.success('Backup {!r} completed: +{} ~{} -{} files, {} transferred, snapshot #{}, took {:.2f}s'.format(
				self.job.name, len(cs.added), len(cs.modified), len(cs.deleted),
				ByteCount(result.bytes_transferred).auto_str(), result.snapshot.id, result.duration_ms / 1000,
			), job_id=self.job.id)
		elif result.state == RunState.cancelled:
			self.event_log.warning('Backup {!r} cancelled during {}'.format(self.job.name, self.__state.name), job_id=self.job.id)
		else:
			self.event_log.error('Backup {!r} failed during {}: {}'.format(self.job.name, self.__state.name, result.error), job_id=self.job.id)
		self.progress.finish(result.state)

	def run(self) -> RunResult:
		start_time = time.time()
		snapshot: Optional[SnapshotInfo] = None
		error: Optional[Exception] = None
		try:
			snapshot = self.__run_phases()
			state = RunState.completed
		except RunCancelled:
			state = RunState.cancelled
			self.__rollback()
		except Exception as e:
			state = RunState.failed
			error = e
			self.logger.debug('Job #{} run #{} failed during {}'.format(self.job.id, self.run_id, self.__state.name), exc_info=True)
			self.__rollback()
		finally:
			if self.__destination is not None:
				try:
					self.__destination.close()
				except Exception:
					self.logger.exception('Failed to close destination {}'.format(self.__destination))

		changeset = self.__changeset
		result = RunResult(
			job_id=self.job.id,
			run_id=self.run_id,
			state=state,
			snapshot=snapshot,
			changeset=changeset,
			bytes_transferred=self.__bytes_transferred,
			file_count=self.__stored_file_count,
			duration_ms=int((time.time() - start_time) * 1000),
			error=error,
		)
		self.__finalize(result)
		return result
