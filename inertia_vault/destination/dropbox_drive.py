from typing import Set, Optional, Any

import dropbox
import requests
from dropbox.exceptions import ApiError, AuthError, HttpError, InternalServerError, RateLimitError
from dropbox.files import WriteMode, FileMetadata

from inertia_vault.config.destination_config import DropboxConfig
from inertia_vault.destination.base import Destination, require
from inertia_vault.exceptions import DestinationError, TransientIOError, AuthorizationError, QuotaError, DestinationBlockNotFound


def _is_path_not_found(error: Any) -> bool:
	# DownloadError and ListFolderError carry a LookupError under "path", DeleteError under "path_lookup"
	if error is None:
		return False
	if hasattr(error, 'is_path') and error.is_path():
		lookup = error.get_path()
	elif hasattr(error, 'is_path_lookup') and error.is_path_lookup():
		lookup = error.get_path_lookup()
	else:
		return False
	return hasattr(lookup, 'is_not_found') and lookup.is_not_found()


def _is_insufficient_space(error: Any) -> bool:
	if error is None or not hasattr(error, 'is_path') or not error.is_path():
		return False
	write_error = getattr(error.get_path(), 'reason', None)
	return write_error is not None and write_error.is_insufficient_space()


class DropboxDestination(Destination):
	"""
	Blocks are files at ``{folder}/{block_id}`` in the Dropbox of the access token owner
	"""

	def __init__(self, identifier: str, folder: str, config: DropboxConfig, *, client: Optional[Any] = None):
		super().__init__(identifier)
		self.folder = '/' + folder.strip('/') if folder.strip('/') != '' else ''
		if client is None:
			client = dropbox.Dropbox(oauth2_access_token=require(config.access_token, 'destination.dropbox.access_token'), timeout=config.timeout)
		self.client = client

	def __path(self, block_id: str) -> str:
		return '{}/{}'.format(self.folder, block_id)

	def __call(self, what: str, block_id: Optional[str], func, *args, **kwargs):
		try:
			return func(*args, **kwargs)
		except AuthError as e:
			raise AuthorizationError('{}: {}'.format(what, e.error)) from e
		except ApiError as e:
			if block_id is not None and _is_path_not_found(e.error):
				raise DestinationBlockNotFound(block_id) from e
			if _is_insufficient_space(e.error):
				raise QuotaError('{}: insufficient space'.format(what)) from e
			raise DestinationError('{}: {}'.format(what, e.error)) from e
		except (RateLimitError, InternalServerError) as e:
			raise TransientIOError('{}: {}'.format(what, e)) from e
		except HttpError as e:
			if e.status_code >= 500 or e.status_code == 429:
				raise TransientIOError('{}: http {}'.format(what, e.status_code)) from e
			raise DestinationError('{}: http {} {}'.format(what, e.status_code, e.body)) from e
		except requests.exceptions.RequestException as e:
			raise TransientIOError('{}: {}'.format(what, e)) from e

	def _write(self, block_id: str, data: bytes):
		# uploads are committed on the server before the call returns
		self.__call('upload {}'.format(block_id), None, self.client.files_upload, data, self.__path(block_id), mode=WriteMode('overwrite'))

	def _read(self, block_id: str) -> bytes:
		_, rsp = self.__call('download {}'.format(block_id), block_id, self.client.files_download, self.__path(block_id))
		try:
			return rsp.content
		finally:
			rsp.close()

	def _delete(self, block_id: str):
		try:
			self.__call('delete {}'.format(block_id), block_id, self.client.files_delete_v2, self.__path(block_id))
		except DestinationBlockNotFound:
			pass

	def list(self) -> Set[str]:
		block_ids: Set[str] = set()
		try:
			result = self.__call('list', '', self.client.files_list_folder, self.folder)
		except DestinationBlockNotFound:
			# the folder does not exist yet
			return block_ids
		while True:
			for entry in result.entries:
				if isinstance(entry, FileMetadata):
					block_ids.add(entry.name)
			if not result.has_more:
				break
			result = self.__call('list', None, self.client.files_list_folder_continue, result.cursor)
		return block_ids

	def close(self):
		close = getattr(self.client, 'close', None)
		if close is not None:
			close()
