import dataclasses
from pathlib import Path
from urllib.parse import urlparse, unquote

from inertia_vault.config.config import Config
from inertia_vault.destination.base import Destination
from inertia_vault.exceptions import ConfigurationError


@dataclasses.dataclass(frozen=True)
class DestinationLocation:
	scheme: str  # local, file, s3 or dropbox
	netloc: str
	path: str


def parse_identifier(identifier: str) -> DestinationLocation:
	"""
	Supported identifiers:

	- ``local``: {storage_root}/destinations/local, or the configured ``destination.local_root``
	- ``file:///abs/path``
	- ``s3://bucket/prefix``
	- ``dropbox:///folder``

	:raise ConfigurationError: if the identifier is not supported
	"""
	if identifier == 'local':
		return DestinationLocation('local', '', '')

	url = urlparse(identifier)
	if url.scheme == 'file':
		path = unquote(url.path)
		if url.netloc not in ('', 'localhost') or not Path(path).is_absolute():
			raise ConfigurationError('file destination needs an absolute path like file:///abs/path, found {!r}'.format(identifier))
		return DestinationLocation('file', '', path)
	elif url.scheme == 's3':
		if url.netloc == '':
			raise ConfigurationError('s3 destination needs a bucket like s3://bucket/prefix, found {!r}'.format(identifier))
		return DestinationLocation('s3', url.netloc, unquote(url.path).lstrip('/'))
	elif url.scheme == 'dropbox':
		if url.netloc != '':
			raise ConfigurationError('dropbox destination should look like dropbox:///folder, found {!r}'.format(identifier))
		return DestinationLocation('dropbox', '', unquote(url.path))
	else:
		raise ConfigurationError('unsupported destination {!r}'.format(identifier))


def create_destination(identifier: str) -> Destination:
	location = parse_identifier(identifier)
	config = Config.get()

	if location.scheme == 'local':
		from inertia_vault.destination.local import LocalDestination
		return LocalDestination(identifier, config.local_destination_path)
	elif location.scheme == 'file':
		from inertia_vault.destination.local import LocalDestination
		return LocalDestination(identifier, Path(location.path))
	elif location.scheme == 's3':
		from inertia_vault.destination.s3 import S3Destination
		return S3Destination(identifier, location.netloc, location.path, config.destination.s3)
	elif location.scheme == 'dropbox':
		from inertia_vault.destination.dropbox_drive import DropboxDestination
		return DropboxDestination(identifier, location.path, config.destination.dropbox)
	else:
		raise AssertionError(location)
