import functools
import threading
from concurrent import futures
from concurrent.futures import ThreadPoolExecutor, Future
from typing import Optional, List

from inertia_vault.pipeline.phases import RunControl
from inertia_vault.utils import misc_utils


class RunWorkerPool(ThreadPoolExecutor):
	"""
	A thread pool for the per-file work of a run:

	- every task checks the :class:`RunControl` before it starts, so a cancelled or timed-out run stops quickly
	- at most ``max_workers`` tasks are in flight, and the first task error is raised by the next :meth:`submit`
	- on exit, all tasks are waited for, then the first task error is raised
	"""
	def __init__(self, name: str, control: RunControl, max_workers: Optional[int] = None):
		if max_workers is None:
			from inertia_vault.config.config import Config
			max_workers = Config.get().get_effective_concurrency()
		super().__init__(max_workers=max_workers, thread_name_prefix=misc_utils.make_thread_name(name))
		self.control = control
		self.__slots = threading.BoundedSemaphore(max_workers)
		self.__futures: List[Future] = []
		self.__error: Optional[Exception] = None
		self.__error_lock = threading.Lock()

	def __run_task(self, func):
		try:
			self.control.check()
			return func()
		except Exception as e:
			with self.__error_lock:
				if self.__error is None:
					self.__error = e
			raise
		finally:
			self.__slots.release()

	def __raise_error(self):
		with self.__error_lock:
			error = self.__error
		if error is not None:
			raise error

	def submit(self, __fn, *args, **kwargs) -> Future:
		self.__slots.acquire()
		try:
			self.__raise_error()
			self.control.check()
		except Exception:
			self.__slots.release()
			raise

		future = super().submit(self.__run_task, functools.partial(__fn, *args, **kwargs))
		self.__futures.append(future)
		return future

	def __exit__(self, exc_type, exc_val, exc_tb):
		try:
			if exc_type is None:
				futures.wait(self.__futures)
				self.__raise_error()
		finally:
			self.shutdown(wait=True, cancel_futures=True)
		return False
