import dataclasses
from typing import Optional

from typing_extensions import Self

from inertia_vault.db import schema
from inertia_vault.db.values import JobSchedule, JobStatus


@dataclasses.dataclass(frozen=True)
class JobInfo:
	id: int
	name: str
	source_root: str
	destination: str
	schedule: JobSchedule
	incremental: bool
	compressed: bool
	created_us: int

	status: JobStatus
	last_run_us: Optional[int]
	total_runs: int
	successful_runs: int
	total_size: int
	files_backed_up: int

	@classmethod
	def of(cls, job: schema.Job) -> Self:
		"""
		Notes: should be inside a session
		"""
		return cls(
			id=job.id,
			name=job.name,
			source_root=job.source_root,
			destination=job.destination,
			schedule=JobSchedule[job.schedule],
			incremental=job.incremental,
			compressed=job.compressed,
			created_us=job.created,
			status=JobStatus[job.status],
			last_run_us=job.last_run,
			total_runs=job.total_runs,
			successful_runs=job.successful_runs,
			total_size=job.total_size,
			files_backed_up=job.files_backed_up,
		)
