import os
import time
from pathlib import Path

from inertia_vault.exceptions import ConfigurationError, PhaseTimeout
from inertia_vault.pipeline.change_detector import ChangeDetector
from inertia_vault.pipeline.phases import RunControl, RunCancelled, RunPhase
from inertia_vault.types.snapshot_info import SnapshotInfo, SnapshotEntry
from inertia_vault.utils import hash_utils
from vault_test_env import VaultTestCase


class ChangeDetectorTestCase(VaultTestCase):
	def make_previous(self, detector: ChangeDetector) -> SnapshotInfo:
		"""
		A snapshot of the current source root, as if it was just backed up
		"""
		scan_result = detector.scan(self.source_root)
		entries = []
		for file in scan_result.files:
			h = hash_utils.calc_file_hash(file.full_path)
			entries.append(SnapshotEntry(file.path, h, file.size, file.mtime_ns, (h,)))
		return SnapshotInfo(1, 1, 1, 0, len(entries), scan_result.total_size, entries)

	@staticmethod
	def set_mtime_ns(path: Path, mtime_ns: int):
		os.utime(path, ns=(mtime_ns, mtime_ns))

	def test_full_scan(self):
		self.write_source_file('a.txt', b'a')
		self.write_source_file('dir/b.txt', b'bb')
		self.write_source_file('dir/sub/c.txt', b'ccc')
		(self.source_root / 'empty_dir').mkdir()

		detector = ChangeDetector()
		scan_result = detector.scan(self.source_root)
		self.assertEqual(['a.txt', 'dir/b.txt', 'dir/sub/c.txt'], [f.path for f in scan_result.files])
		self.assertEqual(6, scan_result.total_size)

		changeset = detector.diff(self.source_root, None)
		self.assertEqual(['a.txt', 'dir/b.txt', 'dir/sub/c.txt'], changeset.added)
		self.assertEqual([], changeset.modified)
		self.assertEqual([], changeset.deleted)

	def test_unchanged(self):
		self.write_source_file('a.txt', b'a')
		self.write_source_file('b.txt', b'b')
		detector = ChangeDetector()
		previous = self.make_previous(detector)

		changeset = detector.diff(self.source_root, previous)
		self.assertTrue(changeset.is_empty())
		self.assertEqual(['a.txt', 'b.txt'], changeset.unchanged)

		# size and mtime unchanged, so nothing needs hashing
		scan_result = detector.scan(self.source_root)
		self.assertEqual([], detector.select_hash_candidates(scan_result, previous))

	def test_size_changed_same_mtime(self):
		file = self.write_source_file('a.txt', b'12345')
		self.set_mtime_ns(file, 1_000_000_000)
		detector = ChangeDetector()
		previous = self.make_previous(detector)

		file.write_bytes(b'123456')
		self.set_mtime_ns(file, 1_000_000_000)
		changeset = detector.diff(self.source_root, previous)
		self.assertEqual(['a.txt'], changeset.modified)

	def test_content_changed_same_size_and_mtime(self):
		file = self.write_source_file('a.txt', b'12345')
		self.set_mtime_ns(file, 1_000_000_000)
		detector = ChangeDetector()
		previous = self.make_previous(detector)

		file.write_bytes(b'54321')
		self.set_mtime_ns(file, 1_000_000_000)
		self.assertTrue(detector.diff(self.source_root, previous).is_empty())

		self.config.backup.always_hash = True
		self.assertEqual(['a.txt'], detector.diff(self.source_root, previous).modified)

	def test_mtime_changed_same_content(self):
		file = self.write_source_file('a.txt', b'12345')
		self.set_mtime_ns(file, 1_000_000_000)
		detector = ChangeDetector()
		previous = self.make_previous(detector)

		self.set_mtime_ns(file, 2_000_000_000)
		changeset = detector.diff(self.source_root, previous)
		self.assertEqual(['a.txt'], changeset.modified)

	def test_added_and_deleted(self):
		self.write_source_file('keep.txt', b'k')
		gone = self.write_source_file('gone/x.txt', b'x')
		detector = ChangeDetector()
		previous = self.make_previous(detector)

		gone.unlink()
		self.write_source_file('new.txt', b'n')
		changeset = detector.diff(self.source_root, previous)
		self.assertEqual(['new.txt'], changeset.added)
		self.assertEqual(['gone/x.txt'], changeset.deleted)
		self.assertEqual(['keep.txt'], changeset.unchanged)
		self.assertEqual(['new.txt'], changeset.get_changed_paths())

	def test_not_incremental(self):
		self.write_source_file('a.txt', b'a')
		detector = ChangeDetector()
		previous = self.make_previous(detector)
		changeset = detector.diff(self.source_root, previous, incremental=False)
		self.assertEqual(['a.txt'], changeset.added)
		self.assertEqual([], changeset.unchanged)

	def test_ignore_patterns(self):
		self.config.backup.ignore_patterns = ['*.log', 'cache/']
		self.write_source_file('a.txt', b'a')
		self.write_source_file('server.log', b'log')
		self.write_source_file('sub/debug.log', b'log')
		self.write_source_file('cache/x.bin', b'x')
		self.write_source_file('not_cache', b'y')

		scan_result = ChangeDetector().scan(self.source_root)
		self.assertEqual(['a.txt', 'not_cache'], [f.path for f in scan_result.files])
		self.assertEqual(3, scan_result.ignored_count)

	def test_symlink_skipped(self):
		target = self.write_source_file('a.txt', b'a')
		try:
			(self.source_root / 'link.txt').symlink_to(target)
		except (OSError, NotImplementedError):
			self.skipTest('symlink not supported')
		scan_result = ChangeDetector().scan(self.source_root)
		self.assertEqual(['a.txt'], [f.path for f in scan_result.files])
		self.assertEqual(1, scan_result.skipped_count)

	def test_bad_source_root(self):
		detector = ChangeDetector()
		with self.assertRaises(ConfigurationError):
			detector.scan(self.test_root / 'not_exists')
		file = self.write_source_file('a.txt', b'a')
		with self.assertRaises(ConfigurationError):
			detector.scan(file)

	def test_hash_files(self):
		self.write_source_file('a.txt', b'aaa')
		self.write_source_file('b.txt', b'bbb')
		detector = ChangeDetector()
		scan_result = detector.scan(self.source_root)
		progress = []
		hashes = detector.hash_files(scan_result.files, on_progress=lambda done, total: progress.append((done, total)))
		self.assertEqual({
			'a.txt': hash_utils.calc_bytes_hash(b'aaa'),
			'b.txt': hash_utils.calc_bytes_hash(b'bbb'),
		}, hashes)
		self.assertEqual([(1, 2), (2, 2)], sorted(progress))

	def test_cancelled(self):
		self.write_source_file('a.txt', b'a')
		control = RunControl()
		control.cancel_event.set()
		with self.assertRaises(RunCancelled):
			ChangeDetector(control=control).scan(self.source_root)

	def test_hash_files_cancelled(self):
		self.write_source_file('a.txt', b'a')
		detector = ChangeDetector()
		scan_result = detector.scan(self.source_root)
		detector.control.cancel_event.set()
		with self.assertRaises(RunCancelled):
			detector.hash_files(scan_result.files)

	def test_hash_files_phase_timeout(self):
		self.write_source_file('a.txt', b'a')
		detector = ChangeDetector()
		scan_result = detector.scan(self.source_root)
		detector.control.begin_phase(RunPhase.hashing, 0.001)
		time.sleep(0.05)
		with self.assertRaises(PhaseTimeout) as cm:
			detector.hash_files(scan_result.files)
		self.assertEqual('hashing', cm.exception.phase_name)
