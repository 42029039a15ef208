import dataclasses
from typing import Optional

from typing_extensions import Self

from inertia_vault.db import schema
from inertia_vault.db.values import LogLevel


@dataclasses.dataclass(frozen=True)
class LogEntryInfo:
	id: int
	timestamp_us: int
	level: LogLevel
	message: str
	job_id: Optional[int]

	@classmethod
	def of(cls, entry: schema.LogEntry) -> Self:
		return cls(
			id=entry.id,
			timestamp_us=entry.timestamp,
			level=LogLevel[entry.level],
			message=entry.message,
			job_id=entry.job_id,
		)
