import functools
import re
from typing import Dict, NamedTuple, Tuple, Union


def _parse_number(s: str) -> Union[int, float]:
	try:
		return int(s)
	except ValueError:
		try:
			value = float(s)
		except ValueError:
			raise ValueError('{!r} is not a number'.format(s)) from None
		if value.is_integer():
			return round(value)
		return value


def _split_unit(s: str) -> Tuple[Union[int, float], str]:
	match = re.fullmatch(r'\s*([-+.\d]+)\s*(\w*)\s*', s)
	if not match:
		raise ValueError('bad value {!r}'.format(s))
	return _parse_number(match.group(1)), match.group(2)


class ValueUnitPair(NamedTuple):
	value: Union[int, float]
	unit: str

	def to_str(self, ndigits: int = 2) -> str:
		if ndigits >= 0 and isinstance(self.value, float):
			return f'{self.value:.{ndigits}f}{self.unit}'
		return f'{self.value}{self.unit}'


class Duration(str):
	"""
	A duration string like "30s", "5m" or "1.5h". Stored as str so it serializes as-is
	"""
	_value: Union[int, float]

	__units = {
		('ms',): 1e-3,
		('s', 'sec'): 1,
		('m', 'min'): 60,
		('h', 'hour'): 60 * 60,
		('d', 'day'): 60 * 60 * 24,
	}

	@classmethod
	@functools.lru_cache
	def __get_unit_map(cls) -> Dict[str, float]:
		ret = {}
		for units, v in cls.__units.items():
			for k in units:
				ret[k] = v
		return ret

	def __new__(cls, s: Union[int, float, str]):
		if isinstance(s, str):
			value, unit = _split_unit(s)
			k = cls.__get_unit_map().get(unit.lower() or 's')
			if k is None:
				raise ValueError('unknown duration unit {!r}'.format(unit))
			duration = value * k
			if isinstance(duration, float) and duration.is_integer():
				duration = int(duration)
			obj = super().__new__(cls, s)
		elif isinstance(s, (int, float)):
			duration = s
			obj = super().__new__(cls, f'{s}s')
		else:
			raise TypeError(type(s))
		obj._value = duration
		return obj

	@property
	def value(self) -> Union[int, float]:
		"""
		Duration in second
		"""
		return self._value


class ByteCount(int):
	__units = ['B', 'KiB', 'MiB', 'GiB', 'TiB', 'PiB']

	def auto_format(self) -> ValueUnitPair:
		value: Union[int, float] = int(self)
		sign = -1 if value < 0 else 1
		value = abs(value)
		unit = self.__units[0]
		for unit in self.__units:
			if value < 1024 or unit == self.__units[-1]:
				break
			value /= 1024
		if isinstance(value, float) and value.is_integer():
			value = int(value)
		return ValueUnitPair(sign * value, unit)

	def auto_str(self, ndigits: int = 2) -> str:
		return self.auto_format().to_str(ndigits)
