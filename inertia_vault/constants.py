import uuid

INSTANCE_ID = uuid.uuid4().hex[:4]
PROJECT_ID = 'inertia_vault'
VERSION = '0.1.0'

# destination block ids
MANIFEST_BLOCK_PREFIX = 'manifest'

# the default of the storage root, where the database and the blob store live
DEFAULT_STORAGE_ROOT = './iv_files'
