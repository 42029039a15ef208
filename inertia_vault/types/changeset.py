import dataclasses
from pathlib import Path
from typing import List, Dict


@dataclasses.dataclass(frozen=True)
class ScannedFile:
	path: str  # posix path, related to the source root
	full_path: Path
	size: int
	mtime_ns: int


@dataclasses.dataclass(frozen=True)
class ScanResult:
	source_root: Path
	files: List[ScannedFile]  # regular files only, sorted by path
	ignored_count: int = 0
	skipped_count: int = 0  # symlinks and special files

	@property
	def total_size(self) -> int:
		return sum(f.size for f in self.files)

	def get_file_by_path(self) -> Dict[str, ScannedFile]:
		return {f.path: f for f in self.files}


@dataclasses.dataclass(frozen=True)
class Changeset:
	added: List[str] = dataclasses.field(default_factory=list)
	modified: List[str] = dataclasses.field(default_factory=list)
	deleted: List[str] = dataclasses.field(default_factory=list)
	unchanged: List[str] = dataclasses.field(default_factory=list)

	def is_empty(self) -> bool:
		return len(self.added) == 0 and len(self.modified) == 0 and len(self.deleted) == 0

	def get_changed_paths(self) -> List[str]:
		"""
		Added and modified paths, sorted. Their content needs to be stored
		"""
		return sorted(self.added + self.modified)
