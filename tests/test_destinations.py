import io
import threading
import unittest
from pathlib import Path
from typing import Dict, List

from botocore.exceptions import ClientError, EndpointConnectionError
from dropbox.exceptions import ApiError, AuthError, HttpError
from dropbox.files import DownloadError, LookupError as DropboxLookupError, FileMetadata, ListFolderResult, ListFolderError

from inertia_vault import logger
from inertia_vault.config.destination_config import S3Config, DropboxConfig
from inertia_vault.destination.dropbox_drive import DropboxDestination
from inertia_vault.destination.factory import parse_identifier, create_destination
from inertia_vault.destination.local import LocalDestination
from inertia_vault.destination.s3 import S3Destination
from inertia_vault.exceptions import (
	DestinationBlockNotFound, TransientIOError, AuthorizationError, DestinationError,
	ConfigurationError, QuotaError,
)
from inertia_vault.utils import retry_utils
from vault_test_env import VaultTestCase


class LocalDestinationTestCase(VaultTestCase):
	def test_write_read_delete(self):
		dest = LocalDestination('local', self.dest_root)
		self.assertEqual(set(), dest.list())

		dest.write('abcdef', b'data')
		dest.write('manifest.1.2', b'{}')
		self.assertEqual(b'data', dest.read('abcdef'))
		self.assertTrue((self.dest_root / 'ab' / 'abcdef').is_file())
		self.assertEqual({'abcdef', 'manifest.1.2'}, dest.list())

		dest.write('abcdef', b'overwritten')
		self.assertEqual(b'overwritten', dest.read('abcdef'))

		dest.delete('abcdef')
		dest.delete('abcdef')
		with self.assertRaises(DestinationBlockNotFound):
			dest.read('abcdef')
		self.assertEqual({'manifest.1.2'}, dest.list())

	def test_bad_block_id(self):
		dest = LocalDestination('local', self.dest_root)
		for block_id in ['', '../x', 'a/b', '.hidden']:
			with self.subTest(block_id=block_id):
				with self.assertRaises(ValueError):
					dest.write(block_id, b'')


class _FakeBody(io.BytesIO):
	pass


class _FakeS3Client:
	def __init__(self):
		self.objects: Dict[str, bytes] = {}
		self.put_errors: List[Exception] = []

	@staticmethod
	def __error(code: str, status: int, op: str) -> ClientError:
		return ClientError({'Error': {'Code': code, 'Message': code}, 'ResponseMetadata': {'HTTPStatusCode': status}}, op)

	def put_object(self, Bucket: str, Key: str, Body: bytes):
		if len(self.put_errors) > 0:
			raise self.put_errors.pop(0)
		self.objects[Key] = Body
		return {}

	def get_object(self, Bucket: str, Key: str):
		if Key not in self.objects:
			raise self.__error('NoSuchKey', 404, 'GetObject')
		return {'Body': _FakeBody(self.objects[Key])}

	def delete_object(self, Bucket: str, Key: str):
		self.objects.pop(Key, None)
		return {}

	def list_objects_v2(self, Bucket: str, Prefix: str, ContinuationToken: str = None):
		keys = sorted(k for k in self.objects if k.startswith(Prefix))
		start = int(ContinuationToken) if ContinuationToken is not None else 0
		page = keys[start:start + 2]
		rsp = {'Contents': [{'Key': k} for k in page], 'IsTruncated': start + 2 < len(keys)}
		if rsp['IsTruncated']:
			rsp['NextContinuationToken'] = str(start + 2)
		return rsp


class S3DestinationTestCase(unittest.TestCase):
	def create(self, client: _FakeS3Client) -> S3Destination:
		return S3Destination('s3://bucket/backups', 'bucket', 'backups', S3Config(), client=client)

	def test_write_read_list(self):
		client = _FakeS3Client()
		dest = self.create(client)
		for i in range(5):
			dest.write('block{}'.format(i), str(i).encode())
		client.objects['backups/nested/other'] = b''
		client.objects['unrelated'] = b''

		self.assertIn('backups/block3', client.objects)
		self.assertEqual(b'3', dest.read('block3'))
		self.assertEqual({'block{}'.format(i) for i in range(5)}, dest.list())

		dest.delete('block3')
		with self.assertRaises(DestinationBlockNotFound) as ctx:
			dest.read('block3')
		self.assertEqual('block3', ctx.exception.block_id)

	def test_error_mapping(self):
		def client_error(code: str, status: int) -> ClientError:
			return ClientError({'Error': {'Code': code, 'Message': 'msg'}, 'ResponseMetadata': {'HTTPStatusCode': status}}, 'PutObject')

		cases = [
			(client_error('AccessDenied', 403), AuthorizationError),
			(client_error('SlowDown', 503), TransientIOError),
			(client_error('InternalError', 500), TransientIOError),
			(client_error('QuotaExceeded', 400), QuotaError),
			(client_error('InvalidArgument', 400), DestinationError),
			(EndpointConnectionError(endpoint_url='http://localhost:1'), TransientIOError),
		]
		for error, expected in cases:
			with self.subTest(error=error):
				client = _FakeS3Client()
				client.put_errors.append(error)
				with self.assertRaises(expected) as ctx:
					self.create(client).write('block', b'')
				self.assertEqual(expected.retryable, ctx.exception.retryable)


class _FakeDownloadResponse:
	def __init__(self, content: bytes):
		self.content = content

	def close(self):
		pass


class _FakeDropboxClient:
	def __init__(self):
		self.files: Dict[str, bytes] = {}
		self.upload_error = None

	def files_upload(self, data: bytes, path: str, mode=None):
		if self.upload_error is not None:
			raise self.upload_error
		self.files[path] = data

	def files_download(self, path: str):
		if path not in self.files:
			raise ApiError('req', DownloadError.path(DropboxLookupError.not_found), None, None)

		return None, _FakeDownloadResponse(self.files[path])

	def files_list_folder(self, path: str):
		if not any(p.startswith(path + '/') for p in self.files):
			raise ApiError('req', ListFolderError.path(DropboxLookupError.not_found), None, None)
		entries = [FileMetadata(name=p[len(path) + 1:]) for p in sorted(self.files) if p.startswith(path + '/')]
		return ListFolderResult(entries=entries, cursor='c', has_more=False)


class DropboxDestinationTestCase(unittest.TestCase):
	def test_write_read_list(self):
		client = _FakeDropboxClient()
		dest = DropboxDestination('dropbox:///vault', 'vault/', DropboxConfig(), client=client)
		self.assertEqual(set(), dest.list())

		dest.write('abc', b'123')
		self.assertEqual({'/vault/abc': b'123'}, client.files)
		self.assertEqual(b'123', dest.read('abc'))
		self.assertEqual({'abc'}, dest.list())
		with self.assertRaises(DestinationBlockNotFound):
			dest.read('def')

	def test_error_mapping(self):
		cases = [
			(AuthError('req', None), AuthorizationError),
			(HttpError('req', 503, 'unavailable'), TransientIOError),
			(HttpError('req', 400, 'bad request'), DestinationError),
		]
		for error, expected in cases:
			with self.subTest(error=error):
				client = _FakeDropboxClient()
				client.upload_error = error
				dest = DropboxDestination('dropbox:///vault', 'vault', DropboxConfig(), client=client)
				with self.assertRaises(expected) as ctx:
					dest.write('abc', b'')
				self.assertEqual(expected.retryable, ctx.exception.retryable)

	def test_missing_token(self):
		with self.assertRaises(ConfigurationError):
			DropboxDestination('dropbox:///vault', 'vault', DropboxConfig())


class DestinationFactoryTestCase(VaultTestCase):
	def test_parse(self):
		self.assertEqual('local', parse_identifier('local').scheme)
		location = parse_identifier('s3://my-bucket/some/prefix')
		self.assertEqual(('s3', 'my-bucket', 'some/prefix'), (location.scheme, location.netloc, location.path))
		location = parse_identifier('dropbox:///backups/vault')
		self.assertEqual(('dropbox', '/backups/vault'), (location.scheme, location.path))
		location = parse_identifier(self.dest_root.as_uri())
		self.assertEqual(self.dest_root, Path(location.path))

		for bad in ['', 'ftp://host/x', 's3:///prefix', 'file://host/x', 'file:relative', 'dropbox://host/x']:
			with self.subTest(identifier=bad):
				with self.assertRaises(ConfigurationError):
					parse_identifier(bad)

	def test_create(self):
		dest = create_destination('local')
		self.assertIsInstance(dest, LocalDestination)
		self.assertEqual(self.config.local_destination_path, dest.root)

		dest = create_destination(self.dest_root.as_uri())
		self.assertIsInstance(dest, LocalDestination)
		self.assertEqual(self.dest_root, dest.root)


class RetryTestCase(unittest.TestCase):
	def test_backoff(self):
		policy = retry_utils.RetryPolicy(attempts=5, backoff=1, backoff_max=3)
		self.assertEqual([1, 2, 3, 3], [policy.get_delay(i) for i in range(1, 5)])

	def test_retry(self):
		policy = retry_utils.RetryPolicy(attempts=3, backoff=0.5, backoff_max=10)
		delays = []
		calls = []

		def func():
			calls.append(1)
			if len(calls) < 3:
				raise TransientIOError('flaky')
			return 'ok'

		self.assertEqual('ok', retry_utils.call_with_retry(func, policy, what='test', logger=logger.get(), sleep=delays.append))
		self.assertEqual([0.5, 1.0], delays)

	def test_not_retryable(self):
		policy = retry_utils.RetryPolicy(attempts=3, backoff=0, backoff_max=0)
		calls = []

		def func():
			calls.append(1)
			raise QuotaError('full')

		with self.assertRaises(QuotaError):
			retry_utils.call_with_retry(func, policy, what='test', logger=logger.get(), sleep=lambda _: None)
		self.assertEqual(1, len(calls))

	def test_timeout(self):
		event = threading.Event()
		try:
			with self.assertRaises(TransientIOError):
				retry_utils.call_with_timeout(lambda: event.wait(10), 0.05, what='slow call')
		finally:
			event.set()
		self.assertEqual(42, retry_utils.call_with_timeout(lambda: 42, 1, what='fast call'))
		with self.assertRaises(AuthorizationError):
			retry_utils.call_with_timeout(self.__raise_auth, 1, what='failing call')

	@staticmethod
	def __raise_auth():
		raise AuthorizationError('denied')
