import contextlib
import threading
from pathlib import Path
from typing import Optional, ContextManager

from sqlalchemy import create_engine, Engine
from sqlalchemy.orm import Session

from inertia_vault.config.config import Config
from inertia_vault.db import db_constants
from inertia_vault.db.migration import DbMigration
from inertia_vault.db.session import DbSession
from inertia_vault.types.hash_method import HashMethod


class DbAccess:
	# sqlite cannot upgrade concurrent read transactions into writes, so sessions of all threads are serialized
	__session_lock = threading.RLock()
	__engine: Optional[Engine] = None
	__db_file_path: Optional[Path] = None

	__hash_method: Optional[HashMethod] = None

	@classmethod
	def init(cls, create: bool, migrate: bool = False):
		db_dir = Config.get().storage_path
		if create:
			db_dir.mkdir(parents=True, exist_ok=True)

		db_path = db_dir / db_constants.DB_FILE_NAME
		# job runs live in their own worker threads, and sqlite write locks are waited for instead of failed
		cls.__engine = create_engine(
			'sqlite:///' + str(db_path),
			connect_args={'check_same_thread': False, 'timeout': 60},
		)
		cls.__db_file_path = db_path

		migration = DbMigration(cls.__engine)
		migration.check_and_migrate(create=create, migrate=migrate)

		cls.sync_hash_method()

	@classmethod
	def shutdown(cls):
		if (engine := cls.__engine) is not None:
			engine.dispose()
			cls.__engine = None
			cls.__hash_method = None

	@classmethod
	def sync_hash_method(cls):
		with cls.open_session() as session:
			hash_method_str = str(session.get_db_meta().hash_method)
		try:
			cls.__hash_method = HashMethod[hash_method_str]
		except KeyError:
			raise ValueError('invalid hash method {!r} in db meta'.format(hash_method_str)) from None

	@classmethod
	def __ensure_engine(cls) -> Engine:
		if cls.__engine is None:
			raise RuntimeError('engine unavailable')
		return cls.__engine

	@classmethod
	def __ensure_not_none(cls, value):
		if value is None:
			raise RuntimeError('db is not initialized yet')
		return value

	@classmethod
	def get_db_file_path(cls) -> Path:
		return cls.__ensure_not_none(cls.__db_file_path)

	@classmethod
	def get_hash_method(cls) -> HashMethod:
		return cls.__ensure_not_none(cls.__hash_method)

	@classmethod
	@contextlib.contextmanager
	def open_session(cls) -> ContextManager['DbSession']:
		with cls.__session_lock:
			with Session(cls.__ensure_engine(), expire_on_commit=False) as session, session.begin():
				yield DbSession(session)
