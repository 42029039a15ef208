import time
import unittest

from apscheduler.triggers.cron import CronTrigger

from inertia_vault.db.values import JobSchedule
from inertia_vault.exceptions import PhaseTimeout
from inertia_vault.pipeline.executor import PipelineExecutor
from inertia_vault.pipeline.phases import RunPhase, RunState, ProgressReporter, RunControl, RunCancelled
from inertia_vault.scheduler.job_scheduler import JobScheduler, SCHEDULE_CRONTABS, get_trigger
from vault_test_env import VaultTestCase


class JobSchedulerTestCase(VaultTestCase):
	def test_triggers(self):
		self.assertIsNone(get_trigger(JobSchedule.manual))
		self.assertEqual({JobSchedule.hourly, JobSchedule.daily, JobSchedule.weekly, JobSchedule.monthly}, set(SCHEDULE_CRONTABS.keys()))
		for schedule in SCHEDULE_CRONTABS.keys():
			with self.subTest(schedule=schedule):
				self.assertIsInstance(get_trigger(schedule), CronTrigger)

	def test_sync_jobs(self):
		manual = self.create_job('manual')
		daily = self.create_job('daily', schedule=JobSchedule.daily)
		executor = PipelineExecutor()
		scheduler = JobScheduler(executor)
		try:
			scheduler.sync_jobs()
			self.assertIsNone(scheduler.scheduler.get_job('job-{}'.format(manual.id)))
			self.assertIsNotNone(scheduler.scheduler.get_job('job-{}'.format(daily.id)))
			self.assertIsNone(scheduler.get_next_run_time(manual.id))

			# syncing again changes nothing
			scheduler.sync_jobs()
			self.assertEqual(1, len(scheduler.scheduler.get_jobs()))
		finally:
			executor.shutdown()

	def test_trigger(self):
		self.write_source_file('a.txt', b'a')
		job = self.create_job('daily', schedule=JobSchedule.daily)
		executor = PipelineExecutor()
		scheduler = JobScheduler(executor)
		try:
			scheduler.trigger(job.id)
			handle = executor.get_handle(job.id)
			if handle is not None:
				handle.wait(30)
			# missing jobs are logged, not raised
			scheduler.trigger(12345)
		finally:
			executor.shutdown()


class ProgressTestCase(unittest.TestCase):
	def test_phase_weights(self):
		self.assertEqual(100, sum(phase.weight for phase in RunPhase))
		self.assertEqual(0, RunPhase.scanning.start_percent)
		self.assertEqual(15, RunPhase.hashing.start_percent)
		self.assertEqual([0, 15, 35, 50, 70, 90], [phase.start_percent for phase in RunPhase])
		self.assertEqual(6, len(set(RunState.of_phase(phase) for phase in RunPhase)))
		self.assertEqual([RunPhase.transferring, RunPhase.verifying], [phase for phase in RunPhase if phase.is_network])
		self.assertEqual(100, RunPhase.verifying.end_percent)
		self.assertEqual(RunState.compressing, RunState.of_phase(RunPhase.compressing))
		self.assertTrue(RunState.cancelled.is_terminal())
		self.assertFalse(RunState.verifying.is_terminal())

	def test_monotonic(self):
		events = []
		reporter = ProgressReporter(1, events.append)
		reporter.enter(RunPhase.scanning)
		reporter.update(RunPhase.hashing, 1, 2)
		reporter.update(RunPhase.hashing, 1, 4)  # total grew, the percent does not go back
		reporter.enter(RunPhase.diffing)
		reporter.update(RunPhase.compressing, 0, 0)
		reporter.finish(RunState.completed)

		percents = [e.percent for e in events]
		self.assertEqual(sorted(percents), percents)
		self.assertEqual(25.0, events[1].percent)
		self.assertEqual(100.0, events[-1].percent)
		self.assertEqual(RunState.completed, events[-1].state)
		self.assertTrue(all(e.job_id == 1 for e in events))

	def test_failed_keeps_percent(self):
		events = []
		reporter = ProgressReporter(1, events.append)
		reporter.update(RunPhase.hashing, 1, 2)
		reporter.finish(RunState.failed)
		self.assertEqual(RunState.failed, events[-1].state)
		self.assertEqual(25.0, events[-1].percent)

	def test_bad_callback(self):
		def callback(_):
			raise RuntimeError('boom')

		reporter = ProgressReporter(1, callback)
		reporter.enter(RunPhase.scanning)
		self.assertEqual(RunState.scanning, reporter.state)

	def test_run_control(self):
		control = RunControl()
		control.begin_phase(RunPhase.scanning, None)
		control.check()

		control.begin_phase(RunPhase.hashing, 0.01)
		time.sleep(0.05)
		with self.assertRaises(PhaseTimeout) as ctx:
			control.check()
		self.assertEqual('hashing', ctx.exception.phase_name)

		control.begin_phase(RunPhase.transferring, None)
		control.check()
		control.cancel_event.set()
		self.assertTrue(control.is_cancelled())
		with self.assertRaises(RunCancelled):
			control.check()
