from pathlib import Path
from typing import Optional

from inertia_vault.action import Action
from inertia_vault.db.access import DbAccess
from inertia_vault.db.values import JobSchedule
from inertia_vault.destination import factory
from inertia_vault.event_log import EventLog
from inertia_vault.exceptions import ConfigurationError
from inertia_vault.pipeline.change_detector import ChangeDetector
from inertia_vault.types.job_info import JobInfo


class CreateJobAction(Action[JobInfo]):
	def __init__(
			self, name: str, source_root: str, destination: str, *,
			schedule: JobSchedule = JobSchedule.manual,
			incremental: bool = True,
			compressed: bool = True,
			event_log: Optional[EventLog] = None,
	):
		super().__init__()
		self.name = name
		self.source_root = source_root
		self.destination = destination
		self.schedule = schedule
		self.incremental = incremental
		self.compressed = compressed
		self.event_log = event_log if event_log is not None else EventLog()

	def run(self) -> JobInfo:
		name = self.name.strip()
		if len(name) == 0:
			raise ConfigurationError('job name should not be empty')
		source_root = Path(self.source_root).absolute()
		ChangeDetector.check_source_root(source_root)
		factory.parse_identifier(self.destination)

		with DbAccess.open_session() as session:
			if session.get_job_by_name_opt(name) is not None:
				raise ConfigurationError('job {!r} already exists'.format(name))
			job = session.create_and_add_job(
				name=name,
				source_root=str(source_root),
				destination=self.destination,
				schedule=self.schedule.name,
				incremental=self.incremental,
				compressed=self.compressed,
			)
			session.flush()
			info = JobInfo.of(job)

		self.event_log.info('Created backup job {!r}: {} -> {}, schedule {}'.format(info.name, info.source_root, info.destination, info.schedule.name), job_id=info.id)
		return info
