import json

from inertia_vault.action.collect_garbage_action import CollectGarbageAction
from inertia_vault.action.create_job_action import CreateJobAction
from inertia_vault.action.delete_job_action import DeleteJobAction
from inertia_vault.action.export_logs_action import ExportLogsAction
from inertia_vault.action.get_job_action import GetJobAction, ListJobsAction, ListRunRecordsAction
from inertia_vault.action.get_overview_action import GetOverviewAction
from inertia_vault.action.list_snapshots_action import ListSnapshotsAction
from inertia_vault.action.validate_blobs_action import ValidateBlobsAction
from inertia_vault.db.access import DbAccess
from inertia_vault.db.values import JobSchedule, JobStatus, LogLevel
from inertia_vault.event_log import EventLog
from inertia_vault.exceptions import ConfigurationError, JobNotFound, AlreadyRunning
from inertia_vault.pipeline.executor import PipelineExecutor
from inertia_vault.pipeline.phases import RunState
from vault_test_env import VaultTestCase


class JobActionsTestCase(VaultTestCase):
	def test_create(self):
		job = self.create_job('photos', schedule=JobSchedule.weekly, incremental=False)
		self.assertEqual('photos', job.name)
		self.assertEqual(str(self.source_root.absolute()), job.source_root)
		self.assertEqual(JobSchedule.weekly, job.schedule)
		self.assertEqual(JobStatus.ready, job.status)
		self.assertFalse(job.incremental)
		self.assertTrue(job.compressed)
		self.assertIsNone(job.last_run_us)
		self.assertEqual(0, job.total_runs)

		self.assertEqual(job, GetJobAction(job.id).run())
		self.assertEqual([job], ListJobsAction().run())

	def test_create_invalid(self):
		self.create_job('photos')
		with self.assertRaises(ConfigurationError):
			self.create_job('photos')
		with self.assertRaises(ConfigurationError):
			self.create_job('  ')
		with self.assertRaises(ConfigurationError):
			CreateJobAction('x', str(self.test_root / 'missing'), 'local').run()
		with self.assertRaises(ConfigurationError):
			CreateJobAction('x', str(self.source_root), 'ftp://host/dir').run()
		self.assertEqual(1, len(ListJobsAction().run()))

	def test_delete(self):
		self.write_source_file('a.txt', b'a' * 100)
		job = self.create_job()
		executor = PipelineExecutor()
		try:
			result = executor.run(job.id)
			self.assertEqual(RunState.completed, result.state, result.error)

			DeleteJobAction(job.id, executor=executor).run()
		finally:
			executor.shutdown()

		with self.assertRaises(JobNotFound):
			GetJobAction(job.id).run()
		self.assertEqual([], ListJobsAction().run())
		for action in [ListRunRecordsAction(job.id), ListSnapshotsAction(job.id), DeleteJobAction(job.id)]:
			with self.assertRaises(JobNotFound):
				action.run()

		gc_result = CollectGarbageAction().run()
		self.assertEqual(1, gc_result.pruned_snapshot_count)
		self.assertEqual(1, gc_result.released_reference_count)
		self.assertEqual(1, gc_result.deleted_blobs.count)
		self.assertEqual(0, GetOverviewAction().run().blob_count)

	def test_delete_running_in_another_process(self):
		job = self.create_job()
		with DbAccess.open_session() as session:
			session.get_job(job.id).status = JobStatus.running.name

		with self.assertRaises(AlreadyRunning):
			DeleteJobAction(job.id).run()
		self.assertEqual(JobStatus.running, GetJobAction(job.id).run().status)

		DeleteJobAction(job.id, force=True).run()
		with self.assertRaises(JobNotFound):
			GetJobAction(job.id).run()

	def test_list_snapshots(self):
		self.write_source_file('a.txt', b'a')
		job = self.create_job()
		executor = PipelineExecutor()
		try:
			executor.run(job.id)
			self.write_source_file('b.txt', b'b')
			executor.run(job.id)
		finally:
			executor.shutdown()

		snapshots = ListSnapshotsAction(job.id).run()
		self.assertEqual(2, len(snapshots))
		self.assertEqual([2, 1], [s.file_count for s in snapshots])
		self.assertEqual([], snapshots[0].entries)
		self.assertEqual(['a.txt', 'b.txt'], [e.path for e in ListSnapshotsAction(job.id, with_entries=True).run()[0].entries])


class LogActionsTestCase(VaultTestCase):
	def test_export_logs(self):
		event_log = EventLog()
		sunk = []
		event_log.add_sink(sunk.append)
		e1 = event_log.info('first', job_id=1)
		e2 = event_log.error('second')
		e3 = event_log.success('third', job_id=1)
		self.assertEqual([e1, e2, e3], sunk)

		data = json.loads(ExportLogsAction().run())
		self.assertEqual(['third', 'second', 'first'], [item['message'] for item in data])
		self.assertEqual({'id', 'timestamp', 'type', 'message', 'job_id'}, set(data[0].keys()))
		self.assertEqual('success', data[0]['type'])
		self.assertEqual(e3.timestamp_us // 1000, data[0]['timestamp'])
		self.assertIsNone(data[1]['job_id'])

		self.assertEqual(['third', 'first'], [item['message'] for item in json.loads(ExportLogsAction(job_id=1).run())])
		self.assertEqual(['third'], [item['message'] for item in json.loads(ExportLogsAction(limit=1).run())])
		self.assertEqual('[]', ExportLogsAction(job_id=2).run())

	def test_bad_sink(self):
		event_log = EventLog()

		def bad_sink(_):
			raise RuntimeError('boom')

		event_log.add_sink(bad_sink)
		entry = event_log.warning('still recorded')
		self.assertEqual(LogLevel.warning, entry.level)
		self.assertEqual([entry], EventLog.list())

		event_log.remove_sink(bad_sink)
		event_log.debug('no sink')
		self.assertEqual(2, len(EventLog.list()))


class OverviewTestCase(VaultTestCase):
	def test_overview(self):
		result = GetOverviewAction().run()
		self.assertEqual(0, result.job_count)
		self.assertEqual(0.0, result.success_rate)
		self.assertEqual('sha256', result.hash_method)

		self.write_source_file('a.txt', b'a' * 1000)
		self.write_source_file('b.txt', b'b' * 1000)
		job = self.create_job()
		executor = PipelineExecutor()
		try:
			executor.run(job.id)
		finally:
			executor.shutdown()

		result = GetOverviewAction().run()
		self.assertEqual(1, result.job_count)
		self.assertEqual(1, result.total_runs)
		self.assertEqual(100.0, result.success_rate)
		self.assertEqual(1, result.snapshot_count)
		self.assertEqual(2, result.blob_count)
		self.assertEqual(2000, result.blob_raw_size_sum)
		self.assertGreater(result.total_size, 0)
		self.assertGreater(result.db_file_size, 0)

		self.assertEqual(0, ValidateBlobsAction().run().bad)
