from mcdreforged.api.utils import Serializable

from inertia_vault.types.units import Duration


class PhaseTimeoutConfig(Serializable):
	scanning: Duration = Duration('30m')
	hashing: Duration = Duration('2h')
	diffing: Duration = Duration('10m')
	compressing: Duration = Duration('2h')
	transferring: Duration = Duration('5m')  # per destination call
	verifying: Duration = Duration('5m')  # per destination call


class PipelineConfig(Serializable):
	retry_attempts: int = 3
	retry_backoff: Duration = Duration('0.5s')
	retry_backoff_max: Duration = Duration('30s')
	timeouts: PhaseTimeoutConfig = PhaseTimeoutConfig()

	def on_deserialization(self, **kwargs):
		if self.retry_attempts < 1:
			raise ValueError('retry_attempts should be at least 1, found {}'.format(self.retry_attempts))
