import dataclasses
from typing import List, Tuple, Optional

from typing_extensions import Self

from inertia_vault.db import schema


@dataclasses.dataclass(frozen=True)
class SnapshotEntry:
	path: str  # posix path, related to the source root
	content_hash: str
	size: int
	mtime_ns: int
	blocks: Tuple[str, ...]  # ordered blob hashes, whose concatenation is the file content

	@classmethod
	def of(cls, file: schema.SnapshotFile) -> Self:
		return cls(
			path=file.path,
			content_hash=file.content_hash,
			size=file.size,
			mtime_ns=file.mtime_ns,
			blocks=tuple(file.blocks),
		)


@dataclasses.dataclass(frozen=True)
class SnapshotInfo:
	id: int
	job_id: int
	run_id: int
	timestamp_us: int
	file_count: int
	total_size: int
	entries: List[SnapshotEntry]

	@classmethod
	def of(cls, snapshot: schema.Snapshot, files: Optional[List[schema.SnapshotFile]] = None) -> Self:
		"""
		Notes: should be inside a session
		"""
		return cls(
			id=snapshot.id,
			job_id=snapshot.job_id,
			run_id=snapshot.run_id,
			timestamp_us=snapshot.timestamp,
			file_count=snapshot.file_count,
			total_size=snapshot.total_size,
			entries=[SnapshotEntry.of(f) for f in files] if files is not None else [],
		)

	def get_entry_by_path(self) -> dict:
		return {e.path: e for e in self.entries}
