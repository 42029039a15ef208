from typing import List, Optional

from inertia_vault.action import Action
from inertia_vault.db.access import DbAccess
from inertia_vault.types.job_info import JobInfo
from inertia_vault.types.run_record_info import RunRecordInfo


class GetJobAction(Action[JobInfo]):
	def __init__(self, job_id: int):
		super().__init__()
		self.job_id = job_id

	def run(self) -> JobInfo:
		with DbAccess.open_session() as session:
			return JobInfo.of(session.get_job(self.job_id))


class ListJobsAction(Action[List[JobInfo]]):
	def run(self) -> List[JobInfo]:
		with DbAccess.open_session() as session:
			return [JobInfo.of(job) for job in session.list_jobs()]


class ListRunRecordsAction(Action[List[RunRecordInfo]]):
	def __init__(self, job_id: int, *, limit: Optional[int] = None):
		super().__init__()
		self.job_id = job_id
		self.limit = limit

	def run(self) -> List[RunRecordInfo]:
		with DbAccess.open_session() as session:
			session.get_job(self.job_id)
			return [RunRecordInfo.of(record) for record in session.list_run_records(self.job_id, limit=self.limit)]
