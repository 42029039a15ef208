from typing import Optional

from mcdreforged.api.utils import Serializable


class S3Config(Serializable):
	region_name: Optional[str] = None
	endpoint_url: Optional[str] = None
	access_key_id: Optional[str] = None
	secret_access_key: Optional[str] = None


class DropboxConfig(Serializable):
	access_token: Optional[str] = None
	timeout: float = 100


class DestinationConfig(Serializable):
	local_root: Optional[str] = None  # root of the "local" destination. None -> {storage_root}/destinations/local
	s3: S3Config = S3Config()
	dropbox: DropboxConfig = DropboxConfig()
