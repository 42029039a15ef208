import enum


class JobStatus(enum.Enum):
	ready = enum.auto()
	running = enum.auto()
	success = enum.auto()
	failed = enum.auto()
	cancelled = enum.auto()


class JobSchedule(enum.Enum):
	manual = enum.auto()
	hourly = enum.auto()
	daily = enum.auto()
	weekly = enum.auto()
	monthly = enum.auto()


class RunOutcome(enum.Enum):
	success = enum.auto()
	failed = enum.auto()
	cancelled = enum.auto()

	def to_job_status(self) -> JobStatus:
		return JobStatus[self.name]


class LogLevel(enum.Enum):
	debug = enum.auto()
	info = enum.auto()
	success = enum.auto()
	warning = enum.auto()
	error = enum.auto()
