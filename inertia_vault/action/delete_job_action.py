from typing import Optional

from inertia_vault.action import Action
from inertia_vault.db.access import DbAccess
from inertia_vault.db.values import JobStatus
from inertia_vault.event_log import EventLog
from inertia_vault.exceptions import AlreadyRunning
from inertia_vault.pipeline.executor import PipelineExecutor
from inertia_vault.store.snapshot_index import SnapshotIndex
from inertia_vault.types.job_info import JobInfo


class DeleteJobAction(Action[JobInfo]):
	"""
	Delete the job and its run records. Its snapshots become unreachable,
	the blocks they reference are released by the next garbage collection
	"""

	def __init__(self, job_id: int, *, executor: Optional[PipelineExecutor] = None, event_log: Optional[EventLog] = None, force: bool = False):
		"""
		:param force: delete the job even if its persisted status is running,
			e.g. when the process running it was killed
		"""
		super().__init__()
		self.job_id = job_id
		self.executor = executor
		self.event_log = event_log if event_log is not None else EventLog()
		self.force = force

	def run(self) -> JobInfo:
		if self.executor is not None and self.executor.is_running(self.job_id):
			raise AlreadyRunning(self.job_id)

		with DbAccess.open_session() as session:
			info = JobInfo.of(session.get_job(self.job_id))
		# the run can be in another process, like "inertia-vault serve"
		if info.status == JobStatus.running and not self.force:
			raise AlreadyRunning(self.job_id)

		# snapshots first: a job without reachable snapshots is still a valid job
		SnapshotIndex().mark_unreachable(self.job_id)
		with DbAccess.open_session() as session:
			session.delete_job(session.get_job(self.job_id))

		self.event_log.info('Deleted backup job {!r}'.format(info.name), job_id=info.id)
		return info
