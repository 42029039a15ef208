from typing import List

from inertia_vault.action import Action
from inertia_vault.db.access import DbAccess
from inertia_vault.store.snapshot_index import SnapshotIndex
from inertia_vault.types.snapshot_info import SnapshotInfo


class ListSnapshotsAction(Action[List[SnapshotInfo]]):
	def __init__(self, job_id: int, *, with_entries: bool = False):
		super().__init__()
		self.job_id = job_id
		self.with_entries = with_entries

	def run(self) -> List[SnapshotInfo]:
		with DbAccess.open_session() as session:
			session.get_job(self.job_id)  # raises JobNotFound
		return SnapshotIndex().history(self.job_id, with_entries=self.with_entries)
