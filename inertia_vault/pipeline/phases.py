import dataclasses
import enum
import threading
import time
from typing import Callable, Optional, Dict

from inertia_vault import logger


class RunPhase(enum.Enum):
	scanning = enum.auto()
	hashing = enum.auto()
	diffing = enum.auto()
	compressing = enum.auto()
	transferring = enum.auto()
	verifying = enum.auto()

	@property
	def weight(self) -> int:
		"""
		The share of the run progress, in percent
		"""
		return _PHASE_WEIGHTS[self]

	@property
	def is_network(self) -> bool:
		"""
		Network phases bound every single destination call, instead of the whole phase
		"""
		return self in (RunPhase.transferring, RunPhase.verifying)

	@property
	def start_percent(self) -> int:
		total = 0
		for phase in RunPhase:
			if phase == self:
				return total
			total += phase.weight
		raise AssertionError()

	@property
	def end_percent(self) -> int:
		return self.start_percent + self.weight


_PHASE_WEIGHTS: Dict[RunPhase, int] = {
	RunPhase.scanning: 15,
	RunPhase.hashing: 20,
	RunPhase.diffing: 15,
	RunPhase.compressing: 20,
	RunPhase.transferring: 20,
	RunPhase.verifying: 10,
}


class RunState(enum.Enum):
	idle = enum.auto()
	scanning = enum.auto()
	hashing = enum.auto()
	diffing = enum.auto()
	compressing = enum.auto()
	transferring = enum.auto()
	verifying = enum.auto()
	completed = enum.auto()
	failed = enum.auto()
	cancelled = enum.auto()

	@classmethod
	def of_phase(cls, phase: RunPhase) -> 'RunState':
		return cls[phase.name]

	def is_terminal(self) -> bool:
		return self in (RunState.completed, RunState.failed, RunState.cancelled)


@dataclasses.dataclass(frozen=True)
class ProgressEvent:
	job_id: int
	state: RunState
	percent: float
	timestamp_us: int


ProgressCallback = Callable[[ProgressEvent], None]


class ProgressReporter:
	"""
	Turns (phase, done, total) updates into :class:`ProgressEvent`, whose percent never decreases
	"""
	def __init__(self, job_id: int, callback: Optional[ProgressCallback]):
		self.job_id = job_id
		self.callback = callback
		self.logger = logger.get()
		self.__lock = threading.Lock()
		self.__percent = 0.0
		self.__state = RunState.idle

	@property
	def state(self) -> RunState:
		return self.__state

	@property
	def percent(self) -> float:
		return self.__percent

	def __emit(self, state: RunState, percent: float):
		with self.__lock:
			percent = max(self.__percent, min(100.0, percent))
			if state == self.__state and percent == self.__percent:
				return
			self.__state = state
			self.__percent = percent
			event = ProgressEvent(self.job_id, state, percent, time.time_ns() // 1000)

		if self.callback is not None:
			try:
				self.callback(event)
			except Exception:
				self.logger.exception('Progress callback {} raised on event {}'.format(self.callback, event))

	def enter(self, phase: RunPhase):
		self.__emit(RunState.of_phase(phase), phase.start_percent)

	def update(self, phase: RunPhase, done: int, total: int):
		ratio = 1.0 if total <= 0 else min(1.0, done / total)
		self.__emit(RunState.of_phase(phase), phase.start_percent + phase.weight * ratio)

	def finish(self, state: RunState):
		"""
		Completed runs reach 100%. Failed or cancelled runs keep their last percent
		"""
		self.__emit(state, 100.0 if state == RunState.completed else self.__percent)


class RunCancelled(Exception):
	"""
	Raised inside a run when cancellation is observed. Not an error: the run ends as cancelled
	"""
	pass


class RunControl:
	"""
	Cancellation flag and phase deadline, checked by the workers between units of work
	"""
	def __init__(self, cancel_event: Optional[threading.Event] = None):
		self.cancel_event = cancel_event if cancel_event is not None else threading.Event()
		self.__phase: Optional[RunPhase] = None
		self.__timeout: Optional[float] = None
		self.__deadline: Optional[float] = None

	def begin_phase(self, phase: RunPhase, timeout: Optional[float]):
		"""
		:param timeout: the max duration of the phase in seconds. None or non-positive means unlimited
		"""
		self.__phase = phase
		if timeout is not None and timeout > 0:
			self.__timeout = timeout
			self.__deadline = time.monotonic() + timeout
		else:
			self.__timeout = None
			self.__deadline = None

	def is_cancelled(self) -> bool:
		return self.cancel_event.is_set()

	def check(self):
		"""
		:raise RunCancelled: if cancellation is requested
		:raise PhaseTimeout: if the current phase has run out of time
		"""
		if self.cancel_event.is_set():
			raise RunCancelled()
		if self.__deadline is not None and time.monotonic() > self.__deadline:
			from inertia_vault.exceptions import PhaseTimeout
			raise PhaseTimeout(self.__phase.name, self.__timeout)
