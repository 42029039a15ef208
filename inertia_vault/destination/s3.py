from typing import Set, Optional, Any

import boto3
from botocore.exceptions import ClientError, BotoCoreError, NoCredentialsError, PartialCredentialsError

from inertia_vault.config.destination_config import S3Config
from inertia_vault.destination.base import Destination
from inertia_vault.exceptions import DestinationError, TransientIOError, AuthorizationError, QuotaError, DestinationBlockNotFound

_AUTH_ERROR_CODES = {
	'AccessDenied', 'AllAccessDisabled', 'InvalidAccessKeyId', 'SignatureDoesNotMatch',
	'ExpiredToken', 'InvalidToken', 'TokenRefreshRequired', 'AccountProblem',
}
_QUOTA_ERROR_CODES = {'QuotaExceeded', 'ServiceQuotaExceeded', 'TooManyBuckets'}
_TRANSIENT_ERROR_CODES = {
	'SlowDown', 'Throttling', 'ThrottlingException', 'RequestTimeout', 'RequestTimeTooSkewed',
	'InternalError', 'ServiceUnavailable', 'OperationAborted',
}
_NOT_FOUND_ERROR_CODES = {'NoSuchKey', 'NotFound', '404'}


def map_client_error(e: ClientError, what: str) -> DestinationError:
	error = e.response.get('Error', {})
	code = str(error.get('Code', ''))
	status = e.response.get('ResponseMetadata', {}).get('HTTPStatusCode') or 0
	msg = '{}: {} ({}, http {})'.format(what, error.get('Message', ''), code, status)
	if code in _AUTH_ERROR_CODES or status in (401, 403):
		return AuthorizationError(msg)
	if code in _QUOTA_ERROR_CODES:
		return QuotaError(msg)
	if code in _TRANSIENT_ERROR_CODES or status >= 500 or status == 429:
		return TransientIOError(msg)
	return DestinationError(msg)


class S3Destination(Destination):
	"""
	Blocks are objects at ``{prefix}{block_id}`` in the bucket
	"""

	def __init__(self, identifier: str, bucket: str, prefix: str, config: S3Config, *, client: Optional[Any] = None):
		super().__init__(identifier)
		self.bucket = bucket
		if prefix != '' and not prefix.endswith('/'):
			prefix += '/'
		self.prefix = prefix
		if client is None:
			session = boto3.Session(
				aws_access_key_id=config.access_key_id,
				aws_secret_access_key=config.secret_access_key,
				region_name=config.region_name,
			)
			client = session.client('s3', endpoint_url=config.endpoint_url)
		self.client = client

	def __key(self, block_id: str) -> str:
		return self.prefix + block_id

	def __call(self, what: str, func, **kwargs):
		try:
			return func(**kwargs)
		except ClientError as e:
			code = str(e.response.get('Error', {}).get('Code', ''))
			if code in _NOT_FOUND_ERROR_CODES and 'Key' in kwargs:
				raise DestinationBlockNotFound(kwargs['Key'][len(self.prefix):]) from e
			raise map_client_error(e, what) from e
		except (NoCredentialsError, PartialCredentialsError) as e:
			raise AuthorizationError('{}: {}'.format(what, e)) from e
		except BotoCoreError as e:
			# connection errors, read timeouts etc.
			raise TransientIOError('{}: {}'.format(what, e)) from e

	def _write(self, block_id: str, data: bytes):
		# S3 has strong read-after-write consistency, an acked put is visible to every reader
		self.__call('put {}'.format(block_id), self.client.put_object, Bucket=self.bucket, Key=self.__key(block_id), Body=data)

	def _read(self, block_id: str) -> bytes:
		rsp = self.__call('get {}'.format(block_id), self.client.get_object, Bucket=self.bucket, Key=self.__key(block_id))
		body = rsp['Body']
		try:
			return body.read()
		except BotoCoreError as e:
			raise TransientIOError('get {}: {}'.format(block_id, e)) from e
		finally:
			body.close()

	def _delete(self, block_id: str):
		self.__call('delete {}'.format(block_id), self.client.delete_object, Bucket=self.bucket, Key=self.__key(block_id))

	def list(self) -> Set[str]:
		block_ids: Set[str] = set()
		kwargs = {'Bucket': self.bucket, 'Prefix': self.prefix}
		while True:
			rsp = self.__call('list', self.client.list_objects_v2, **kwargs)
			for obj in rsp.get('Contents', []):
				block_id = obj['Key'][len(self.prefix):]
				# objects in nested "directories" are not ours
				if block_id != '' and '/' not in block_id:
					block_ids.add(block_id)
			if not rsp.get('IsTruncated'):
				break
			kwargs['ContinuationToken'] = rsp['NextContinuationToken']
		return block_ids

	def close(self):
		close = getattr(self.client, 'close', None)
		if close is not None:
			close()
