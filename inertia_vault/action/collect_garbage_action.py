import dataclasses

from inertia_vault.action import Action
from inertia_vault.store.content_store import ContentStore
from inertia_vault.store.snapshot_index import SnapshotIndex
from inertia_vault.types.blob_info import BlobListSummary


@dataclasses.dataclass(frozen=True)
class CollectGarbageResult:
	pruned_snapshot_count: int
	released_reference_count: int
	deleted_blobs: BlobListSummary


class CollectGarbageAction(Action[CollectGarbageResult]):
	"""
	Drop unreachable snapshots, then delete the blocks nothing references anymore
	"""

	def run(self) -> CollectGarbageResult:
		content_store = ContentStore()
		prune_result = SnapshotIndex().prune_unreachable(content_store)
		summary = content_store.collect_garbage()
		self.logger.info('Garbage collection: pruned {} unreachable snapshots, released {} block references, deleted {} blobs'.format(
			prune_result.snapshot_count, prune_result.released_reference_count, summary.count,
		))
		return CollectGarbageResult(prune_result.snapshot_count, prune_result.released_reference_count, summary)
