from typing import Optional, List, get_type_hints

from sqlalchemy import String, Integer, ForeignKey, BigInteger, JSON, Boolean
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
	def __repr__(self) -> str:
		return '{}({})'.format(
			self.__class__.__name__,
			', '.join(f'{k}={v!r}' for k, v in self.to_dict().items()),
		)

	def to_dict(self) -> dict:
		values = {}
		for name, type_ in get_type_hints(self.__class__).items():
			if name == '__fields_end__':
				break
			if not name.startswith('_') and getattr(type_, '__origin__', None) == Mapped:
				values[name] = getattr(self, name)
		return values


class DbMeta(Base):
	__tablename__ = 'db_meta'

	magic: Mapped[int] = mapped_column(Integer, primary_key=True)
	version: Mapped[int] = mapped_column(Integer)
	hash_method: Mapped[str] = mapped_column(String)


class Blob(Base):
	__tablename__ = 'blob'

	hash: Mapped[str] = mapped_column(String, primary_key=True)
	compress: Mapped[str] = mapped_column(String)
	raw_size: Mapped[int] = mapped_column(BigInteger)
	stored_size: Mapped[int] = mapped_column(BigInteger)
	ref_count: Mapped[int] = mapped_column(BigInteger, index=True)

	__fields_end__: bool


class Job(Base):
	__tablename__ = 'job'
	__table_args__ = {'sqlite_autoincrement': True}

	id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
	name: Mapped[str] = mapped_column(String, unique=True)
	source_root: Mapped[str] = mapped_column(String)
	destination: Mapped[str] = mapped_column(String)
	schedule: Mapped[str] = mapped_column(String)  # see enum JobSchedule
	incremental: Mapped[bool] = mapped_column(Boolean)
	compressed: Mapped[bool] = mapped_column(Boolean)
	created: Mapped[int] = mapped_column(BigInteger)  # timestamp in us

	status: Mapped[str] = mapped_column(String)  # see enum JobStatus
	last_run: Mapped[Optional[int]] = mapped_column(BigInteger)  # timestamp in us
	total_runs: Mapped[int] = mapped_column(Integer)
	successful_runs: Mapped[int] = mapped_column(Integer)
	total_size: Mapped[int] = mapped_column(BigInteger)  # sum of bytes transferred by successful runs
	files_backed_up: Mapped[int] = mapped_column(BigInteger)

	__fields_end__: bool


class Snapshot(Base):
	__tablename__ = 'snapshot'
	__table_args__ = {'sqlite_autoincrement': True}

	id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
	# not a foreign key: snapshots outlive their deleted job until garbage collection
	job_id: Mapped[int] = mapped_column(Integer, index=True)
	run_id: Mapped[int] = mapped_column(Integer)
	timestamp: Mapped[int] = mapped_column(BigInteger)  # timestamp in us
	file_count: Mapped[int] = mapped_column(BigInteger)
	total_size: Mapped[int] = mapped_column(BigInteger)  # raw size sum of the distinct referenced blobs
	reachable: Mapped[bool] = mapped_column(Boolean, index=True)

	__fields_end__: bool


class SnapshotFile(Base):
	__tablename__ = 'snapshot_file'

	snapshot_id: Mapped[int] = mapped_column(ForeignKey('snapshot.id'), primary_key=True, index=True)
	path: Mapped[str] = mapped_column(String, primary_key=True)
	content_hash: Mapped[str] = mapped_column(String)
	size: Mapped[int] = mapped_column(BigInteger)
	mtime_ns: Mapped[int] = mapped_column(BigInteger)
	blocks: Mapped[List[str]] = mapped_column(JSON)  # ordered blob hashes

	__fields_end__: bool


class RunRecord(Base):
	__tablename__ = 'run_record'
	__table_args__ = {'sqlite_autoincrement': True}

	id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
	job_id: Mapped[int] = mapped_column(ForeignKey('job.id'), index=True)
	started: Mapped[int] = mapped_column(BigInteger)  # timestamp in us
	ended: Mapped[Optional[int]] = mapped_column(BigInteger)  # timestamp in us
	outcome: Mapped[Optional[str]] = mapped_column(String)  # see enum RunOutcome. None: in progress
	bytes_transferred: Mapped[int] = mapped_column(BigInteger)
	file_count: Mapped[int] = mapped_column(BigInteger)
	snapshot_id: Mapped[Optional[int]] = mapped_column(Integer)
	error: Mapped[Optional[str]] = mapped_column(String)

	__fields_end__: bool


class LogEntry(Base):
	__tablename__ = 'log_entry'
	__table_args__ = {'sqlite_autoincrement': True}

	id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
	timestamp: Mapped[int] = mapped_column(BigInteger, index=True)  # timestamp in us
	level: Mapped[str] = mapped_column(String)  # see enum LogLevel
	message: Mapped[str] = mapped_column(String)
	job_id: Mapped[Optional[int]] = mapped_column(Integer)

	__fields_end__: bool
