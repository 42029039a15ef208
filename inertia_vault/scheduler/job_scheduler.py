"""
Cron-like trigger driver of the scheduled jobs. The engine never schedules itself,
this only calls :meth:`PipelineExecutor.start` when a job is due
"""
import datetime
import threading
from typing import Dict, Optional

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from inertia_vault import logger
from inertia_vault.action.get_job_action import ListJobsAction
from inertia_vault.db.values import JobSchedule
from inertia_vault.exceptions import AlreadyRunning, JobNotFound
from inertia_vault.pipeline.executor import PipelineExecutor
from inertia_vault.utils import misc_utils

SCHEDULE_CRONTABS: Dict[JobSchedule, str] = {
	JobSchedule.hourly: '0 * * * *',
	JobSchedule.daily: '0 2 * * *',
	JobSchedule.weekly: '0 2 * * 0',
	JobSchedule.monthly: '0 2 1 * *',
}


def get_trigger(schedule: JobSchedule) -> Optional[CronTrigger]:
	"""
	:return: None for manual jobs
	"""
	crontab = SCHEDULE_CRONTABS.get(schedule)
	if crontab is None:
		return None
	return CronTrigger.from_crontab(crontab)


class JobScheduler:
	def __init__(self, executor: PipelineExecutor):
		self.executor = executor
		self.logger = logger.get()
		self.thread = threading.Thread(target=self.__scheduler_loop, name=misc_utils.make_thread_name('job-scheduler'), daemon=True)
		self.scheduler = BlockingScheduler(
			logger=self.logger,
			executors={
				'default': ThreadPoolExecutor(
					pool_kwargs=dict(thread_name_prefix=misc_utils.make_thread_name('scheduler')),
				)
			},
		)
		self.__scheduled: Dict[int, JobSchedule] = {}
		self.__lock = threading.Lock()

	def start(self):
		self.sync_jobs()
		self.thread.start()

	def shutdown(self):
		if self.thread.is_alive():
			self.scheduler.shutdown()
			self.thread.join()

	def __scheduler_loop(self):
		try:
			self.scheduler.start()
		except Exception as e:
			self.logger.error('scheduler loop error: {}'.format(e))
			raise

	@classmethod
	def __aps_job_id(cls, job_id: int) -> str:
		return 'job-{}'.format(job_id)

	def sync_jobs(self):
		"""
		Make the triggers match the jobs in the database. Call it after jobs are created or deleted
		"""
		jobs = {job.id: job for job in ListJobsAction().run()}
		with self.__lock:
			for job_id in list(self.__scheduled.keys()):
				job = jobs.get(job_id)
				if job is None or job.schedule != self.__scheduled[job_id]:
					self.scheduler.remove_job(self.__aps_job_id(job_id))
					del self.__scheduled[job_id]

			for job in jobs.values():
				if job.id in self.__scheduled or (trigger := get_trigger(job.schedule)) is None:
					continue
				self.scheduler.add_job(
					func=self.trigger,
					args=(job.id,),
					trigger=trigger,
					id=self.__aps_job_id(job.id),
					name='backup job {!r}'.format(job.name),
					max_instances=1,
					coalesce=True,
				)
				self.__scheduled[job.id] = job.schedule
				self.logger.debug('Scheduled job #{} {!r}, schedule {}'.format(job.id, job.name, job.schedule.name))

	def get_next_run_time(self, job_id: int) -> Optional[datetime.datetime]:
		aps_job = self.scheduler.get_job(self.__aps_job_id(job_id))
		if aps_job is None:
			return None
		# jobs added before the scheduler starts have no next run time yet
		return getattr(aps_job, 'next_run_time', None)

	def trigger(self, job_id: int):
		try:
			self.executor.start(job_id)
		except AlreadyRunning:
			self.logger.info('Job #{} is still running, skipped this scheduled run'.format(job_id))
		except JobNotFound:
			self.logger.warning('Scheduled job #{} does not exist anymore'.format(job_id))
		else:
			self.logger.info('Started scheduled run of job #{}'.format(job_id))
