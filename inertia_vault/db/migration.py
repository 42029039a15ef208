from typing import Optional

from sqlalchemy import Engine, Inspector
from sqlalchemy.orm import Session

from inertia_vault import logger
from inertia_vault.config.config import Config
from inertia_vault.db import schema, db_constants
from inertia_vault.exceptions import InertiaVaultError


class BadDbVersion(InertiaVaultError):
	pass


class DbMigration:
	DB_MAGIC_INDEX = db_constants.DB_MAGIC_INDEX
	DB_VERSION = db_constants.DB_VERSION

	def __init__(self, engine: Engine):
		self.logger = logger.get()
		self.engine = engine

	def check_and_migrate(self, *, create: bool, migrate: bool):
		inspector = Inspector.from_engine(self.engine)
		if inspector.has_table(schema.DbMeta.__tablename__):
			with Session(self.engine) as session, session.begin():
				dbm: Optional[schema.DbMeta] = session.get(schema.DbMeta, self.DB_MAGIC_INDEX)
				if dbm is None:
					raise ValueError('table DbMeta is empty')
				current_version = dbm.version

			if current_version != self.DB_VERSION:
				if current_version > self.DB_VERSION:
					self.logger.error('The current DB version {} is larger than expected {}'.format(current_version, self.DB_VERSION))
					raise BadDbVersion('existing db version {} too large'.format(current_version))
				if not migrate:
					raise BadDbVersion('DB version mismatch (expect {}, found {})'.format(self.DB_VERSION, current_version))
				# there is only one schema version so far, nothing can be older than it
				raise BadDbVersion('no migration path from DB version {}'.format(current_version))
		else:
			if not create:
				raise BadDbVersion('DbMeta table not found')

			self.logger.info('Table {} does not exist, assuming newly created db, create everything'.format(schema.DbMeta.__tablename__))
			self.__create_the_world()

	def __create_the_world(self):
		schema.Base.metadata.create_all(self.engine)
		config = Config.get()
		with Session(self.engine) as session, session.begin():
			session.add(schema.DbMeta(
				magic=self.DB_MAGIC_INDEX,
				version=self.DB_VERSION,
				hash_method=config.backup.hash_method.name,
			))
