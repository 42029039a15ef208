from pathlib import Path


def get_blob_store() -> Path:
	from inertia_vault.config.config import Config
	return Config.get().blobs_path


def get_blob_path(h: str, *, blob_store: Path = None) -> Path:
	if len(h) <= 2:
		raise ValueError(f'hash {h!r} too short')

	if blob_store is None:
		blob_store = get_blob_store()
	return blob_store / h[:2] / h
