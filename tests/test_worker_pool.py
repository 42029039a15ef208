import threading
import time
import unittest

from inertia_vault.exceptions import PhaseTimeout
from inertia_vault.pipeline.phases import RunControl, RunCancelled, RunPhase
from inertia_vault.utils.thread_pool import RunWorkerPool


class RunWorkerPoolTestCase(unittest.TestCase):
	def test_all_tasks_done(self):
		results = []
		lock = threading.Lock()

		def task(i: int):
			with lock:
				results.append(i)

		with RunWorkerPool('test', RunControl(), max_workers=4) as pool:
			for i in range(50):
				pool.submit(task, i)
		self.assertEqual(list(range(50)), sorted(results))

	def test_error_stops_submission(self):
		submitted = 0

		def task(i: int):
			if i == 0:
				raise ValueError('bad file')
			time.sleep(0.01)

		with self.assertRaises(ValueError):
			with RunWorkerPool('test', RunControl(), max_workers=1) as pool:
				for i in range(100):
					pool.submit(task, i)
					submitted += 1
		self.assertLess(submitted, 100)

	def test_error_raised_on_exit(self):
		def task():
			raise ValueError('bad file')

		with self.assertRaises(ValueError):
			with RunWorkerPool('test', RunControl(), max_workers=2) as pool:
				pool.submit(task)

	def test_cancelled(self):
		control = RunControl()
		started = threading.Event()
		ran = []

		def task(i: int):
			ran.append(i)
			if i == 0:
				started.set()
				control.cancel_event.set()

		with self.assertRaises(RunCancelled):
			with RunWorkerPool('test', control, max_workers=1) as pool:
				for i in range(100):
					pool.submit(task, i)
		self.assertTrue(started.is_set())
		self.assertLess(len(ran), 100)

	def test_phase_timeout(self):
		control = RunControl()
		control.begin_phase(RunPhase.hashing, 0.001)
		time.sleep(0.05)
		with self.assertRaises(PhaseTimeout):
			with RunWorkerPool('test', control, max_workers=2) as pool:
				pool.submit(lambda: None)
