from typing import Optional, List

from pydantic import TypeAdapter

from inertia_vault.action import Action
from inertia_vault.event_log import EventLog
from inertia_vault.types.documents import ExportedLogEntry

_export_adapter = TypeAdapter(List[ExportedLogEntry])


class ExportLogsAction(Action[str]):
	"""
	Export the event log as a JSON array, newest first
	"""

	def __init__(self, *, limit: Optional[int] = None, job_id: Optional[int] = None):
		super().__init__()
		self.limit = limit
		self.job_id = job_id

	def run(self) -> str:
		entries = EventLog.list(limit=self.limit, job_id=self.job_id)
		items = [ExportedLogEntry.from_info(entry) for entry in entries]
		return _export_adapter.dump_json(items, indent=2).decode('utf8')
