import os
import stat
import threading
import time
from pathlib import Path
from typing import List, Optional, Dict, Callable

import pathspec

from inertia_vault import logger
from inertia_vault.config.config import Config
from inertia_vault.exceptions import ConfigurationError
from inertia_vault.pipeline.phases import RunControl
from inertia_vault.types.changeset import ScannedFile, ScanResult, Changeset
from inertia_vault.types.snapshot_info import SnapshotInfo, SnapshotEntry
from inertia_vault.utils import hash_utils
from inertia_vault.utils.thread_pool import RunWorkerPool

ProgressFunc = Callable[[int, int], None]  # (done, total)


class ChangeDetector:
	"""
	Compares a source tree against the previous snapshot of a job.

	The steps are exposed separately, so the executor can report each of them as its own phase:
	:meth:`scan` -> :meth:`select_hash_candidates` -> :meth:`hash_files` -> :meth:`compute`
	"""

	def __init__(self, *, control: Optional[RunControl] = None):
		self.logger = logger.get()
		self.config = Config.get()
		self.control = control if control is not None else RunControl()

	@classmethod
	def check_source_root(cls, source_root: Path):
		if not source_root.exists():
			raise ConfigurationError('source root {!r} does not exist'.format(str(source_root)))
		if not source_root.is_dir():
			raise ConfigurationError('source root {!r} is not a directory'.format(str(source_root)))

	def scan(self, source_root: Path) -> ScanResult:
		self.check_source_root(source_root)
		ignore_patterns = pathspec.GitIgnoreSpec.from_lines(self.config.backup.ignore_patterns)
		files: List[ScannedFile] = []
		ignored_cnt, skipped_cnt = 0, 0

		def scan(full_path: Path):
			nonlocal ignored_cnt, skipped_cnt
			self.control.check()

			rel_path = full_path.relative_to(source_root)
			try:
				st = full_path.lstat()
			except FileNotFoundError:
				self.logger.debug('File {!r} disappeared during scanning'.format(str(full_path)))
				return

			is_dir = stat.S_ISDIR(st.st_mode)
			# directory patterns like "cache/" only match paths ending with a slash
			if ignore_patterns.match_file(rel_path.as_posix() + ('/' if is_dir else '')):
				ignored_cnt += 1
				return

			if is_dir:
				# order does not matter, the result is sorted at the end
				for child in os.listdir(full_path):
					scan(full_path / child)
			elif stat.S_ISREG(st.st_mode):
				files.append(ScannedFile(rel_path.as_posix(), full_path, st.st_size, st.st_mtime_ns))
			else:
				self.logger.debug('Skipping non-regular file {!r}, mode {}'.format(rel_path.as_posix(), oct(st.st_mode)))
				skipped_cnt += 1

		start_time = time.time()
		for child in os.listdir(source_root):
			scan(source_root / child)
		files.sort(key=lambda f: f.path)

		self.logger.debug('Scan done, cost {:.2f}s, files {}, ignored {}, skipped {}'.format(time.time() - start_time, len(files), ignored_cnt, skipped_cnt))
		return ScanResult(source_root, files, ignored_cnt, skipped_cnt)

	def select_hash_candidates(self, scan_result: ScanResult, previous: Optional[SnapshotInfo], *, incremental: bool = True) -> List[ScannedFile]:
		"""
		Files whose content hash is needed to tell the changeset, or to build the new entries.
		Files with unchanged size and mtime reuse the previous hash, unless ``always_hash`` is on
		"""
		if previous is None or not incremental or self.config.backup.always_hash:
			return list(scan_result.files)

		prev_entries = previous.get_entry_by_path()
		candidates = []
		for file in scan_result.files:
			prev: Optional[SnapshotEntry] = prev_entries.get(file.path)
			if prev is None or prev.size != file.size or prev.mtime_ns != file.mtime_ns:
				candidates.append(file)
		return candidates

	def hash_files(self, files: List[ScannedFile], *, on_progress: Optional[ProgressFunc] = None) -> Dict[str, str]:
		"""
		:return: a dict, path -> content hash
		"""
		hashes: Dict[str, str] = {}
		lock = threading.Lock()
		done = 0

		def hash_worker(file: ScannedFile):
			nonlocal done
			try:
				h = hash_utils.calc_file_hash(file.full_path)
			except FileNotFoundError:
				self.logger.warning('File {!r} disappeared during hashing'.format(file.path))
				h = None
			with lock:
				if h is not None:
					hashes[file.path] = h
				done += 1
				cur = done
			if on_progress is not None:
				on_progress(cur, len(files))

		with RunWorkerPool('hasher', self.control) as pool:
			for file in files:
				pool.submit(hash_worker, file)

		return hashes

	def compute(self, scan_result: ScanResult, hashes: Dict[str, str], previous: Optional[SnapshotInfo], *, incremental: bool = True) -> Changeset:
		changeset = Changeset()
		if previous is None or not incremental:
			changeset.added.extend(f.path for f in scan_result.files)
			return changeset

		prev_entries = previous.get_entry_by_path()
		current_paths = set()
		for file in scan_result.files:
			self.control.check()
			current_paths.add(file.path)
			prev = prev_entries.get(file.path)
			if prev is None:
				changeset.added.append(file.path)
			elif prev.size != file.size or prev.mtime_ns != file.mtime_ns:
				# a changed size is a modification even if the mtime stays the same
				changeset.modified.append(file.path)
			elif (h := hashes.get(file.path)) is not None and h != prev.content_hash:
				changeset.modified.append(file.path)
			else:
				changeset.unchanged.append(file.path)

		changeset.deleted.extend(sorted(p for p in prev_entries.keys() if p not in current_paths))
		return changeset

	def diff(self, source_root: Path, previous: Optional[SnapshotInfo], *, incremental: bool = True) -> Changeset:
		scan_result = self.scan(source_root)
		candidates = self.select_hash_candidates(scan_result, previous, incremental=incremental)
		hashes = self.hash_files(candidates)
		return self.compute(scan_result, hashes, previous, incremental=incremental)
