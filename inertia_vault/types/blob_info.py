import dataclasses
from typing import Iterable

from typing_extensions import Self

from inertia_vault.compressors import CompressMethod
from inertia_vault.db import schema


@dataclasses.dataclass(frozen=True)
class BlobInfo:
	hash: str
	compress: CompressMethod
	raw_size: int
	stored_size: int
	ref_count: int

	@classmethod
	def of(cls, blob: schema.Blob) -> Self:
		"""
		Notes: should be inside a session
		"""
		return cls(
			hash=blob.hash,
			compress=CompressMethod[blob.compress],
			raw_size=blob.raw_size,
			stored_size=blob.stored_size,
			ref_count=blob.ref_count,
		)


@dataclasses.dataclass
class BlobListSummary:
	count: int
	raw_size: int
	stored_size: int

	@classmethod
	def zero(cls) -> Self:
		return cls(0, 0, 0)

	@classmethod
	def of(cls, blobs: Iterable[BlobInfo]) -> Self:
		cnt, raw_size_sum, stored_size_sum = 0, 0, 0
		for blob in blobs:
			cnt += 1
			raw_size_sum += blob.raw_size
			stored_size_sum += blob.stored_size
		return cls(cnt, raw_size_sum, stored_size_sum)
