"""
JSON documents of the engine entities. Enums are stored by their names
"""
import enum
import time
from typing import List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, PlainSerializer
from typing_extensions import Annotated, Literal, Self

from inertia_vault.db.values import JobSchedule, JobStatus, RunOutcome, LogLevel
from inertia_vault.types.job_info import JobInfo
from inertia_vault.types.log_entry_info import LogEntryInfo
from inertia_vault.types.run_record_info import RunRecordInfo
from inertia_vault.types.snapshot_info import SnapshotInfo, SnapshotEntry

_E = TypeVar('_E', bound=enum.Enum)


def _enum_by_name(enum_class: Type[_E]):
	def validate(value):
		if isinstance(value, enum_class):
			return value
		try:
			return enum_class[value]
		except (KeyError, TypeError):
			raise ValueError('bad {} value {!r}'.format(enum_class.__name__, value)) from None

	return Annotated[enum_class, BeforeValidator(validate), PlainSerializer(lambda e: e.name, return_type=str, when_used='json')]


_JobScheduleName = _enum_by_name(JobSchedule)
_JobStatusName = _enum_by_name(JobStatus)
_RunOutcomeName = _enum_by_name(RunOutcome)
_LogLevelName = _enum_by_name(LogLevel)


class SnapshotEntryDocument(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	path: str
	content_hash: str
	size: int
	mtime_ns: int
	blocks: Tuple[str, ...]

	def to_info(self) -> SnapshotEntry:
		return SnapshotEntry(self.path, self.content_hash, self.size, self.mtime_ns, tuple(self.blocks))


class JobDocument(BaseModel):
	type: Literal['job'] = 'job'
	id: int
	name: str
	source_root: str
	destination: str
	schedule: _JobScheduleName
	incremental: bool
	compressed: bool
	created_us: int
	status: _JobStatusName
	last_run_us: Optional[int]
	total_runs: int
	successful_runs: int
	total_size: int
	files_backed_up: int

	@classmethod
	def from_info(cls, info: JobInfo) -> Self:
		return cls.model_validate(info, from_attributes=True)

	def to_info(self) -> JobInfo:
		return JobInfo(**self.model_dump(exclude={'type'}))


class SnapshotDocument(BaseModel):
	type: Literal['snapshot'] = 'snapshot'
	id: int
	job_id: int
	run_id: int
	timestamp_us: int
	file_count: int
	total_size: int
	entries: List[SnapshotEntryDocument]

	@classmethod
	def from_info(cls, info: SnapshotInfo) -> Self:
		return cls.model_validate(info, from_attributes=True)

	def to_info(self) -> SnapshotInfo:
		return SnapshotInfo(
			id=self.id,
			job_id=self.job_id,
			run_id=self.run_id,
			timestamp_us=self.timestamp_us,
			file_count=self.file_count,
			total_size=self.total_size,
			entries=[e.to_info() for e in self.entries],
		)


class RunRecordDocument(BaseModel):
	type: Literal['run_record'] = 'run_record'
	id: int
	job_id: int
	started_us: int
	ended_us: Optional[int]
	outcome: Optional[_RunOutcomeName]
	bytes_transferred: int
	file_count: int
	snapshot_id: Optional[int]
	error: Optional[str]

	@classmethod
	def from_info(cls, info: RunRecordInfo) -> Self:
		return cls.model_validate(info, from_attributes=True)

	def to_info(self) -> RunRecordInfo:
		return RunRecordInfo(**self.model_dump(exclude={'type'}))


class LogEntryDocument(BaseModel):
	type: Literal['log_entry'] = 'log_entry'
	id: int
	timestamp_us: int
	level: _LogLevelName
	message: str
	job_id: Optional[int]

	@classmethod
	def from_info(cls, info: LogEntryInfo) -> Self:
		return cls.model_validate(info, from_attributes=True)

	def to_info(self) -> LogEntryInfo:
		return LogEntryInfo(**self.model_dump(exclude={'type'}))


class SnapshotManifest(BaseModel):
	"""
	Written to the destination next to the blocks, so a snapshot can be restored without the database
	"""
	job_id: int
	job_name: str
	run_id: int
	timestamp_us: int = Field(default_factory=lambda: time.time_ns() // 1000)
	hash_method: str
	entries: List[SnapshotEntryDocument] = Field(default_factory=list)

	def to_bytes(self) -> bytes:
		return self.model_dump_json().encode('utf8')

	@classmethod
	def from_bytes(cls, data: bytes) -> Self:
		return cls.model_validate_json(data)


class ExportedLogEntry(BaseModel):
	"""
	An item of the exported event log
	"""
	id: int
	timestamp: int  # ms
	type: str  # the log level
	message: str
	job_id: Optional[int]

	@classmethod
	def from_info(cls, entry: LogEntryInfo) -> Self:
		return cls(id=entry.id, timestamp=entry.timestamp_us // 1000, type=entry.level.name, message=entry.message, job_id=entry.job_id)
