import dataclasses
import logging
import threading
import time
from typing import Callable, TypeVar, Optional, Any

from inertia_vault.exceptions import DestinationError, TransientIOError
from inertia_vault.utils import misc_utils

_T = TypeVar('_T')


@dataclasses.dataclass(frozen=True)
class RetryPolicy:
	attempts: int  # total attempts, including the first one
	backoff: float  # seconds to wait after the first failure, doubled after each one
	backoff_max: float

	@classmethod
	def of_config(cls, pipeline_config) -> 'RetryPolicy':
		return cls(
			attempts=pipeline_config.retry_attempts,
			backoff=pipeline_config.retry_backoff.value,
			backoff_max=pipeline_config.retry_backoff_max.value,
		)

	def get_delay(self, failure_count: int) -> float:
		"""
		:param failure_count: how many attempts have failed so far, starting from 1
		"""
		return min(self.backoff * (2 ** (failure_count - 1)), self.backoff_max)


def call_with_retry(
		func: Callable[[], _T], policy: RetryPolicy, *,
		what: str, logger: logging.Logger,
		sleep: Callable[[float], Any] = time.sleep,
) -> _T:
	"""
	Call ``func``, retrying on retryable :class:`DestinationError` with exponential backoff.
	Errors that are not retryable, and the error of the last attempt, propagate
	"""
	for i in range(1, policy.attempts + 1):
		try:
			return func()
		except DestinationError as e:
			if not e.retryable or i >= policy.attempts:
				raise
			delay = policy.get_delay(i)
			logger.warning('{} failed (attempt {}/{}): {}, retrying in {:.2f}s'.format(what, i, policy.attempts, e, delay))
			sleep(delay)
	raise AssertionError('unreachable')


def call_with_timeout(func: Callable[[], _T], timeout: Optional[float], *, what: str) -> _T:
	"""
	Run ``func`` in a separate thread and wait at most ``timeout`` seconds for it.
	The call is abandoned, not interrupted, on timeout

	:raise TransientIOError: on timeout
	"""
	if timeout is None or timeout <= 0:
		return func()

	result = {}

	def worker():
		try:
			result['value'] = func()
		except BaseException as e:
			result['error'] = e

	thread = threading.Thread(target=worker, name=misc_utils.make_thread_name('io'), daemon=True)
	thread.start()
	thread.join(timeout)
	if thread.is_alive():
		raise TransientIOError('{} timed out after {}s'.format(what, timeout))
	if 'error' in result:
		raise result['error']
	return result['value']
