"""File storage for uploaded assets.

Two backends share one key layout:
    <container>/[<site_key>/][YYYY-MM/]<uuid>-<filename>

- local: files under STORAGE_LOCAL_PATH, served by the API, URL /uploads/...
- s3:    objects in AWS_BUCKET_NAME, URL https://<bucket>.s3.amazonaws.com/<key>
"""

import logging
import os
import re
from datetime import datetime
from typing import BinaryIO, Optional
from urllib.parse import urlparse
from uuid import uuid4

from flask import current_app

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f]')


class StorageError(Exception):
    """Raised when a backend cannot store or remove a file."""


def sanitize_filename(filename: str) -> str:
    """Strip path separators and control characters from a client filename."""
    name = os.path.basename((filename or '').replace('\\', '/'))
    name = _UNSAFE_CHARS.sub('', name).strip().strip('.')
    return name or 'file'


class FileStorage:
    """Common key building; subclasses move the bytes."""

    storage_type = None

    def __init__(self, organize_by_month=True):
        self.organize_by_month = organize_by_month

    def build_key(self, filename, container, site_key=None):
        parts = [container]
        if site_key:
            parts.append(site_key)
        if self.organize_by_month:
            parts.append(datetime.utcnow().strftime('%Y-%m'))
        parts.append(f"{uuid4()}-{sanitize_filename(filename)}")
        return '/'.join(parts)

    def upload_file(self, stream: BinaryIO, filename: str, content_type: str,
                    container: str, site_key: Optional[str] = None) -> str:
        """Store a file and return the URL to record on the asset."""
        raise NotImplementedError

    def delete_file(self, url: str) -> None:
        raise NotImplementedError

    def open_file(self, url: str) -> Optional[BinaryIO]:
        """Open a stored file for reading, or None when it is gone."""
        raise NotImplementedError

    def file_exists(self, url: str) -> bool:
        raise NotImplementedError


class LocalFileStorage(FileStorage):
    storage_type = 'local'

    def __init__(self, base_path, base_url='', organize_by_month=True):
        super().__init__(organize_by_month)
        self.base_path = os.path.abspath(base_path)
        self.base_url = (base_url or '').rstrip('/')

    def upload_file(self, stream, filename, content_type, container, site_key=None):
        key = self.build_key(filename, container, site_key)
        path = self._path_for_key(key)
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, 'wb') as out:
                while True:
                    chunk = stream.read(64 * 1024)
                    if not chunk:
                        break
                    out.write(chunk)
        except OSError as e:
            logger.error(f"Local upload failed for {key}: {e}")
            raise StorageError('Failed to store file') from e

        logger.info(f"Stored {key} ({content_type})")
        return f"{self.base_url}/uploads/{key}"

    def delete_file(self, url):
        path = self._path_from_url(url)
        if path is None or not os.path.isfile(path):
            return
        try:
            os.remove(path)
        except OSError as e:
            raise StorageError('Failed to delete file') from e
        self._cleanup_empty_dirs(os.path.dirname(path))

    def open_file(self, url):
        path = self._path_from_url(url)
        if path is None or not os.path.isfile(path):
            return None
        return open(path, 'rb')

    def file_exists(self, url):
        path = self._path_from_url(url)
        return path is not None and os.path.isfile(path)

    def _path_for_key(self, key):
        path = os.path.abspath(os.path.join(self.base_path, *key.split('/')))
        if os.path.commonpath([path, self.base_path]) != self.base_path:
            raise StorageError('Invalid storage path')
        return path

    def _path_from_url(self, url):
        """Map a stored URL back to a file path under base_path, or None."""
        if not url:
            return None
        if self.base_url and url.startswith(self.base_url):
            url = url[len(self.base_url):]
        if not url.startswith('/uploads/'):
            return None
        try:
            return self._path_for_key(url[len('/uploads/'):])
        except StorageError:
            logger.warning(f"Rejected storage path outside base: {url}")
            return None

    def _cleanup_empty_dirs(self, directory):
        # Stop at the base path itself
        while directory and len(directory) > len(self.base_path) and os.path.isdir(directory):
            if os.listdir(directory):
                break
            try:
                os.rmdir(directory)
            except OSError:
                break
            directory = os.path.dirname(directory)


class S3FileStorage(FileStorage):
    storage_type = 's3'

    def __init__(self, bucket_name, region='us-east-1', access_key_id=None,
                 secret_access_key=None, organize_by_month=True, client=None):
        super().__init__(organize_by_month)
        self.bucket_name = bucket_name
        self.region = region
        self._access_key_id = access_key_id
        self._secret_access_key = secret_access_key
        self._s3_client = client

    @property
    def s3_client(self):
        """Get or create the boto3 client. Credentials fall back to the default chain (IAM role)."""
        if self._s3_client is None:
            import boto3

            self._s3_client = boto3.client(
                's3',
                region_name=self.region,
                aws_access_key_id=self._access_key_id or None,
                aws_secret_access_key=self._secret_access_key or None,
            )
        return self._s3_client

    def upload_file(self, stream, filename, content_type, container, site_key=None):
        from botocore.exceptions import BotoCoreError, ClientError

        key = self.build_key(filename, container, site_key)
        try:
            self.s3_client.upload_fileobj(
                stream,
                self.bucket_name,
                key,
                ExtraArgs={'ContentType': content_type, 'ACL': 'public-read'},
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"S3 upload failed for {key}: {e}")
            raise StorageError('Failed to store file') from e

        logger.info(f"Uploaded s3://{self.bucket_name}/{key}")
        return f"https://{self.bucket_name}.s3.amazonaws.com/{key}"

    def delete_file(self, url):
        from botocore.exceptions import BotoCoreError, ClientError

        key = self.key_from_url(url)
        if not key:
            return
        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=key)
        except (BotoCoreError, ClientError) as e:
            raise StorageError('Failed to delete file') from e

    def open_file(self, url):
        from botocore.exceptions import ClientError

        key = self.key_from_url(url)
        if not key:
            return None
        try:
            response = self.s3_client.get_object(Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            if _is_not_found(e):
                return None
            raise StorageError('Failed to read file') from e
        return response['Body']

    def file_exists(self, url):
        from botocore.exceptions import ClientError

        key = self.key_from_url(url)
        if not key:
            return False
        try:
            self.s3_client.head_object(Bucket=self.bucket_name, Key=key)
            return True
        except ClientError as e:
            if _is_not_found(e):
                return False
            raise StorageError('Failed to check file') from e

    @staticmethod
    def key_from_url(url):
        if not url:
            return None
        if url.startswith('https://'):
            return urlparse(url).path.lstrip('/')
        return url.lstrip('/')


def _is_not_found(error):
    code = str(error.response.get('Error', {}).get('Code', ''))
    return code in ('404', 'NoSuchKey', 'NotFound')


def create_storage(config) -> FileStorage:
    """Build the backend named by STORAGE_TYPE."""
    storage_type = (config.get('STORAGE_TYPE') or 'local').lower()
    organize = config.get('STORAGE_ORGANIZE_BY_MONTH', True)

    if storage_type == 's3':
        return S3FileStorage(
            bucket_name=config['AWS_BUCKET_NAME'],
            region=config.get('AWS_REGION', 'us-east-1'),
            access_key_id=config.get('AWS_ACCESS_KEY_ID'),
            secret_access_key=config.get('AWS_SECRET_ACCESS_KEY'),
            organize_by_month=organize,
        )
    if storage_type != 'local':
        logger.warning(f"Unknown STORAGE_TYPE '{storage_type}', using local storage")

    return LocalFileStorage(
        base_path=config['STORAGE_LOCAL_PATH'],
        base_url=config.get('STORAGE_LOCAL_BASE_URL', ''),
        organize_by_month=organize,
    )


def get_storage() -> FileStorage:
    """The storage backend for the current app, created once per app."""
    storage = current_app.extensions.get('file_storage')
    if storage is None:
        storage = create_storage(current_app.config)
        current_app.extensions['file_storage'] = storage
    return storage


def storage_for(storage_type) -> FileStorage:
    """Backend able to read/delete files written with the given storage_type."""
    storage = get_storage()
    if storage.storage_type == storage_type:
        return storage
    config = dict(current_app.config)
    config['STORAGE_TYPE'] = storage_type
    return create_storage(config)
