from typing import Optional


class InertiaVaultError(Exception):
	pass


class ConfigurationError(InertiaVaultError):
	"""
	Invalid job definition or engine configuration. Never retried
	"""
	pass


class JobNotFound(InertiaVaultError):
	def __init__(self, job_id: int):
		super().__init__('job #{} not found'.format(job_id))
		self.job_id = job_id


class SnapshotNotFound(InertiaVaultError):
	def __init__(self, snapshot_id: int):
		super().__init__('snapshot #{} not found'.format(snapshot_id))
		self.snapshot_id = snapshot_id


class BlobNotFound(InertiaVaultError):
	def __init__(self, blob_hash: str):
		super().__init__('blob {} not found'.format(blob_hash))
		self.blob_hash = blob_hash


class IntegrityError(InertiaVaultError):
	MISSING = 'block file missing'
	UNDECODABLE = 'decompress failed'
	MISMATCH = 'digest mismatch'

	def __init__(self, blob_hash: str, found: Optional[str] = None, *, what: str = MISMATCH):
		super().__init__('{} for block {}, found {}'.format(what, blob_hash, found))
		self.blob_hash = blob_hash
		self.found = found
		self.what = what


class AlreadyRunning(InertiaVaultError):
	def __init__(self, job_id: int):
		super().__init__('job #{} already has an active run'.format(job_id))
		self.job_id = job_id


class PhaseTimeout(InertiaVaultError):
	def __init__(self, phase_name: str, timeout: float):
		super().__init__('phase {} exceeded its time limit of {}s'.format(phase_name, timeout))
		self.phase_name = phase_name
		self.timeout = timeout


# ================================== Destination ==================================

class DestinationError(InertiaVaultError):
	retryable: bool = False


class TransientIOError(DestinationError):
	retryable = True


class AuthorizationError(DestinationError):
	pass


class QuotaError(DestinationError):
	pass


class DestinationBlockNotFound(DestinationError):
	def __init__(self, block_id: str):
		super().__init__('block {!r} does not exist in the destination'.format(block_id))
		self.block_id = block_id
