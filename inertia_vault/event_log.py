"""
The persistent, user-facing event log. Entries are append-only, and also go to the logger
"""
import logging
import threading
from typing import Callable, List, Optional

from inertia_vault import logger
from inertia_vault.db.access import DbAccess
from inertia_vault.db.values import LogLevel
from inertia_vault.types.log_entry_info import LogEntryInfo

LogSink = Callable[[LogEntryInfo], None]

_LOGGING_LEVELS = {
	LogLevel.debug: logging.DEBUG,
	LogLevel.info: logging.INFO,
	LogLevel.success: logging.INFO,
	LogLevel.warning: logging.WARNING,
	LogLevel.error: logging.ERROR,
}


class EventLog:
	def __init__(self):
		self.logger = logger.get()
		self.__sinks: List[LogSink] = []
		self.__sinks_lock = threading.Lock()

	def add_sink(self, sink: LogSink):
		with self.__sinks_lock:
			self.__sinks.append(sink)

	def remove_sink(self, sink: LogSink):
		with self.__sinks_lock:
			self.__sinks.remove(sink)

	def record(self, level: LogLevel, message: str, *, job_id: Optional[int] = None) -> LogEntryInfo:
		with DbAccess.open_session() as session:
			entry = session.create_and_add_log_entry(level.name, message, job_id)
			session.flush()
			info = LogEntryInfo.of(entry)

		prefix = '[job #{}] '.format(job_id) if job_id is not None else ''
		self.logger.log(_LOGGING_LEVELS[level], prefix + message)

		with self.__sinks_lock:
			sinks = list(self.__sinks)
		for sink in sinks:
			try:
				sink(info)
			except Exception:
				self.logger.exception('Log sink {} raised on entry {}'.format(sink, info))
		return info

	def debug(self, message: str, *, job_id: Optional[int] = None) -> LogEntryInfo:
		return self.record(LogLevel.debug, message, job_id=job_id)

	def info(self, message: str, *, job_id: Optional[int] = None) -> LogEntryInfo:
		return self.record(LogLevel.info, message, job_id=job_id)

	def success(self, message: str, *, job_id: Optional[int] = None) -> LogEntryInfo:
		return self.record(LogLevel.success, message, job_id=job_id)

	def warning(self, message: str, *, job_id: Optional[int] = None) -> LogEntryInfo:
		return self.record(LogLevel.warning, message, job_id=job_id)

	def error(self, message: str, *, job_id: Optional[int] = None) -> LogEntryInfo:
		return self.record(LogLevel.error, message, job_id=job_id)

	@classmethod
	def list(cls, *, limit: Optional[int] = None, job_id: Optional[int] = None) -> List[LogEntryInfo]:
		"""
		Newest first
		"""
		with DbAccess.open_session() as session:
			return [LogEntryInfo.of(e) for e in session.list_log_entries(limit=limit, job_id=job_id)]
