"""
Actions, the operations the engine offers to its callers
"""
import logging
from abc import ABC, abstractmethod
from typing import TypeVar, Generic

_T = TypeVar('_T')


class Action(Generic[_T], ABC):
	def __init__(self):
		from inertia_vault import logger
		from inertia_vault.config.config import Config
		self.logger: logging.Logger = logger.get()
		self.config: Config = Config.get()

	@abstractmethod
	def run(self) -> _T:
		...
