import dataclasses
from typing import Optional

from typing_extensions import Self

from inertia_vault.db import schema
from inertia_vault.db.values import RunOutcome


@dataclasses.dataclass(frozen=True)
class RunRecordInfo:
	id: int
	job_id: int
	started_us: int
	ended_us: Optional[int]
	outcome: Optional[RunOutcome]
	bytes_transferred: int
	file_count: int
	snapshot_id: Optional[int]
	error: Optional[str]

	@property
	def duration_ms(self) -> Optional[int]:
		if self.ended_us is None:
			return None
		return (self.ended_us - self.started_us) // 1000

	@classmethod
	def of(cls, record: schema.RunRecord) -> Self:
		return cls(
			id=record.id,
			job_id=record.job_id,
			started_us=record.started,
			ended_us=record.ended,
			outcome=RunOutcome[record.outcome] if record.outcome is not None else None,
			bytes_transferred=record.bytes_transferred,
			file_count=record.file_count,
			snapshot_id=record.snapshot_id,
			error=record.error,
		)
