DB_FILE_NAME = 'inertia_vault.db'
DB_MAGIC_INDEX: int = 0
DB_VERSION: int = 1
