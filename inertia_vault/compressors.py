import enum
from abc import abstractmethod, ABC
from typing import Union

from typing_extensions import Protocol


class Compressor(ABC):
	@classmethod
	def create(cls, method: Union[str, 'CompressMethod']) -> 'Compressor':
		if not isinstance(method, CompressMethod):
			if method in CompressMethod.__members__:
				method = CompressMethod[method]
			else:
				raise ValueError(f'Unknown compression method: {method}')
		return method.value()

	@classmethod
	def get_method(cls) -> 'CompressMethod':
		return CompressMethod(cls)

	@classmethod
	def get_name(cls) -> str:
		return cls.get_method().name

	@abstractmethod
	def compress(self, data: bytes) -> bytes:
		"""
		(data) --[compress]--> (bytes)
		"""
		...

	@abstractmethod
	def decompress(self, data: bytes) -> bytes:
		"""
		(data) --[decompress]--> (bytes)
		"""
		...


class PlainCompressor(Compressor):
	def compress(self, data: bytes) -> bytes:
		return bytes(data)

	def decompress(self, data: bytes) -> bytes:
		return bytes(data)


class _OneShotLibrary(Protocol):
	def compress(self, data: bytes) -> bytes:
		...

	def decompress(self, data: bytes) -> bytes:
		...


class _OneShotCompressorBase(Compressor, ABC):
	@classmethod
	@abstractmethod
	def _lib(cls) -> _OneShotLibrary:
		...

	def compress(self, data: bytes) -> bytes:
		return self._lib().compress(data)

	def decompress(self, data: bytes) -> bytes:
		return self._lib().decompress(data)


class GzipCompressor(_OneShotCompressorBase):
	@classmethod
	def _lib(cls):
		import gzip
		return gzip


class LzmaCompressor(_OneShotCompressorBase):
	@classmethod
	def _lib(cls):
		import lzma
		return lzma


class ZstdCompressor(_OneShotCompressorBase):
	@classmethod
	def _lib(cls):
		import zstandard
		return zstandard


class Lz4Compressor(_OneShotCompressorBase):
	@classmethod
	def _lib(cls):
		# noinspection PyPackageRequirements
		import lz4.frame
		return lz4.frame


class CompressMethod(enum.Enum):
	plain = PlainCompressor
	gzip = GzipCompressor
	lzma = LzmaCompressor
	zstd = ZstdCompressor
	lz4 = Lz4Compressor

	def __repr__(self) -> str:
		return '{}({!r})'.format(self.__class__.__name__, self.name)
