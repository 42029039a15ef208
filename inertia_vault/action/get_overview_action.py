import dataclasses

from inertia_vault.action import Action
from inertia_vault.db.access import DbAccess


@dataclasses.dataclass(frozen=True)
class OverviewResult:
	db_version: int
	hash_method: str

	job_count: int
	total_runs: int
	successful_runs: int
	total_size: int  # bytes transferred by the successful runs of all jobs
	snapshot_count: int

	blob_count: int
	blob_stored_size_sum: int
	blob_raw_size_sum: int

	db_file_size: int

	@property
	def success_rate(self) -> float:
		"""
		In percent, 0 if there is no run yet
		"""
		if self.total_runs == 0:
			return 0.0
		return self.successful_runs / self.total_runs * 100


class GetOverviewAction(Action[OverviewResult]):
	def run(self) -> OverviewResult:
		db_file_size = DbAccess.get_db_file_path().stat().st_size
		with DbAccess.open_session() as session:
			meta = session.get_db_meta()
			jobs = session.list_jobs()
			return OverviewResult(
				db_version=meta.version,
				hash_method=meta.hash_method,

				job_count=len(jobs),
				total_runs=sum(job.total_runs for job in jobs),
				successful_runs=sum(job.successful_runs for job in jobs),
				total_size=sum(job.total_size for job in jobs),
				snapshot_count=session.get_snapshot_count(),

				blob_count=session.get_blob_count(),
				blob_stored_size_sum=session.get_blob_stored_size_sum(),
				blob_raw_size_sum=session.get_blob_raw_size_sum(),

				db_file_size=db_file_size,
			)
