import os
import threading
from pathlib import Path


def fsync_dir(path: Path):
	if os.name != 'posix':
		return
	fd = os.open(path, os.O_RDONLY)
	try:
		os.fsync(fd)
	finally:
		os.close(fd)


def write_file_atomic(path: Path, data: bytes):
	"""
	Write to a temp file aside, fsync, then rename it into place.
	Readers see either nothing or the full content
	"""
	path.parent.mkdir(parents=True, exist_ok=True)
	temp_path = path.with_name('.{}.{}_{}.tmp'.format(path.name, os.getpid(), threading.get_ident()))
	try:
		with open(temp_path, 'wb') as f:
			f.write(data)
			f.flush()
			os.fsync(f.fileno())
		os.replace(temp_path, path)
	except BaseException:
		temp_path.unlink(missing_ok=True)
		raise
	fsync_dir(path.parent)


def remove_file_quietly(path: Path) -> bool:
	try:
		path.unlink(missing_ok=True)
	except OSError:
		return False
	return True
