from inertia_vault.action import Action
from inertia_vault.store.content_store import ContentStore, ValidateBlobsResult


class ValidateBlobsAction(Action[ValidateBlobsResult]):
	def run(self) -> ValidateBlobsResult:
		result = ContentStore().validate()
		for item in result.missing + result.corrupted + result.mismatched:
			self.logger.warning('Bad blob {}: {}'.format(item.blob.hash, item.desc))
		return result
