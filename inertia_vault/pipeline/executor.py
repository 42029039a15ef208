import threading
from concurrent.futures import Future
from typing import Optional, Dict, List

from inertia_vault import logger
from inertia_vault.db.access import DbAccess
from inertia_vault.db.values import JobStatus
from inertia_vault.event_log import EventLog
from inertia_vault.exceptions import AlreadyRunning
from inertia_vault.pipeline.backup_run import BackupRun, RunResult, DestinationFactory
from inertia_vault.pipeline.phases import RunControl, ProgressReporter, ProgressEvent, ProgressCallback, RunState
from inertia_vault.destination.factory import create_destination
from inertia_vault.store.content_store import ContentStore
from inertia_vault.store.snapshot_index import SnapshotIndex
from inertia_vault.types.job_info import JobInfo
from inertia_vault.utils import misc_utils


class RunHandle:
	def __init__(self, job_id: int, run_id: int, control: RunControl, progress: ProgressReporter):
		self.job_id = job_id
		self.run_id = run_id
		self.control = control
		self.progress = progress
		self.future: 'Future[RunResult]' = Future()

	@property
	def state(self) -> RunState:
		return self.progress.state

	def cancel(self):
		self.control.cancel_event.set()

	def done(self) -> bool:
		return self.future.done()

	def wait(self, timeout: Optional[float] = None) -> RunResult:
		"""
		:raise concurrent.futures.TimeoutError: if the run does not end in time
		"""
		return self.future.result(timeout=timeout)

	def __repr__(self) -> str:
		return misc_utils.represent(self, attrs={'job_id': self.job_id, 'run_id': self.run_id, 'state': self.state.name})


class PipelineExecutor:
	"""
	Runs jobs in worker threads, at most one active run per job
	"""

	def __init__(
			self, *,
			content_store: Optional[ContentStore] = None,
			snapshot_index: Optional[SnapshotIndex] = None,
			event_log: Optional[EventLog] = None,
			destination_factory: DestinationFactory = create_destination,
	):
		self.logger = logger.get()
		self.content_store = content_store if content_store is not None else ContentStore()
		self.snapshot_index = snapshot_index if snapshot_index is not None else SnapshotIndex()
		self.event_log = event_log if event_log is not None else EventLog()
		self.destination_factory = destination_factory

		self.__lock = threading.Lock()
		self.__active: Dict[int, RunHandle] = {}
		self.__progress_callbacks: List[ProgressCallback] = []
		self.__shutdown = False

	def add_progress_callback(self, callback: ProgressCallback):
		with self.__lock:
			self.__progress_callbacks.append(callback)

	def __on_progress(self, event: ProgressEvent):
		with self.__lock:
			callbacks = list(self.__progress_callbacks)
		for callback in callbacks:
			callback(event)

	def start(self, job_id: int) -> RunHandle:
		"""
		Start a run of the job in a new worker thread

		:raise AlreadyRunning: if the job has an active run. Nothing is changed in this case
		:raise JobNotFound: if the job does not exist
		"""
		with self.__lock:
			if self.__shutdown:
				raise RuntimeError('executor is shut down')
			if job_id in self.__active:
				raise AlreadyRunning(job_id)

			with DbAccess.open_session() as session:
				job = session.get_job(job_id)
				record = session.create_and_add_run_record(job_id)
				session.flush()
				job.status = JobStatus.running.name
				job_info = JobInfo.of(job)
				run_id = record.id

			control = RunControl()
			handle = RunHandle(job_id, run_id, control, ProgressReporter(job_id, self.__on_progress))
			self.__active[job_id] = handle

		thread = threading.Thread(
			target=self.__run_worker, args=(job_info, handle),
			name=misc_utils.make_thread_name('job-{}'.format(job_id)),
			daemon=True,
		)
		thread.start()
		return handle

	def __run_worker(self, job: JobInfo, handle: RunHandle):
		result: Optional[RunResult] = None
		error: Optional[BaseException] = None
		try:
			self.event_log.info('Backup {!r} started, run #{}'.format(job.name, handle.run_id), job_id=job.id)
			backup_run = BackupRun(
				job, handle.run_id,
				control=handle.control,
				progress=handle.progress,
				event_log=self.event_log,
				content_store=self.content_store,
				snapshot_index=self.snapshot_index,
				destination_factory=self.destination_factory,
			)
			result = backup_run.run()
		except BaseException as e:
			self.logger.exception('Unexpected error in the run #{} of job #{}'.format(handle.run_id, job.id))
			error = e
		finally:
			# unregister first, so the job can be started again once the handle resolves
			with self.__lock:
				self.__active.pop(job.id, None)

		if error is not None:
			handle.future.set_exception(error)
		else:
			handle.future.set_result(result)

	def run(self, job_id: int) -> RunResult:
		"""
		Run the job and wait for it to end
		"""
		return self.start(job_id).wait()

	def cancel(self, job_id: int) -> bool:
		"""
		Request the active run of the job to stop after its current unit of work

		:return: whether the job has an active run
		"""
		with self.__lock:
			handle = self.__active.get(job_id)
		if handle is None:
			return False
		handle.cancel()
		self.logger.info('Cancellation requested for job #{} run #{}'.format(job_id, handle.run_id))
		return True

	def is_running(self, job_id: int) -> bool:
		with self.__lock:
			return job_id in self.__active

	def get_handle(self, job_id: int) -> Optional[RunHandle]:
		with self.__lock:
			return self.__active.get(job_id)

	def list_running(self) -> List[int]:
		with self.__lock:
			return sorted(self.__active.keys())

	def shutdown(self, *, cancel: bool = True, timeout: Optional[float] = None):
		"""
		Stop accepting new runs. Active runs are cancelled if ``cancel`` is set, then waited for
		"""
		with self.__lock:
			self.__shutdown = True
			handles = list(self.__active.values())
		for handle in handles:
			if cancel:
				handle.cancel()
		for handle in handles:
			try:
				handle.wait(timeout=timeout)
			except Exception:
				self.logger.exception('Run {} did not end cleanly'.format(handle))
