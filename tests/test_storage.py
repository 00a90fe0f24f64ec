"""
Tests for the local and S3 storage backends.
"""

import io
import os
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from identity_api.services.storage import (
    LocalFileStorage, S3FileStorage, StorageError, create_storage, sanitize_filename
)


def _client_error(code, operation='GetObject'):
    return ClientError({'Error': {'Code': code, 'Message': code}}, operation)


class TestSanitizeFilename:

    @pytest.mark.parametrize('raw, expected', [
        ('photo.png', 'photo.png'),
        ('../../etc/passwd', 'passwd'),
        ('C:\\Users\\me\\logo.png', 'logo.png'),
        ('bad<name>?.png', 'badname.png'),
        ('', 'file'),
        ('...', 'file'),
    ])
    def test_sanitize(self, raw, expected):
        assert sanitize_filename(raw) == expected


class TestLocalFileStorage:

    def test_upload_open_delete(self, tmp_path):
        storage = LocalFileStorage(str(tmp_path), organize_by_month=False)

        url = storage.upload_file(io.BytesIO(b'hello'), 'hello.txt', 'text/plain', 'docs', 'pickleball')

        assert url.startswith('/uploads/docs/pickleball/')
        assert url.endswith('-hello.txt')
        assert storage.file_exists(url)
        with storage.open_file(url) as f:
            assert f.read() == b'hello'

        storage.delete_file(url)
        assert not storage.file_exists(url)
        # Empty folders are removed up to the base path
        assert os.listdir(tmp_path) == []

    def test_month_folder(self, tmp_path):
        storage = LocalFileStorage(str(tmp_path), organize_by_month=True)
        url = storage.upload_file(io.BytesIO(b'x'), 'a.png', 'image/png', 'logos')

        month = url.split('/')[3]
        assert len(month) == 7 and month[4] == '-'

    def test_base_url_prefix(self, tmp_path):
        storage = LocalFileStorage(str(tmp_path), base_url='https://api.example.com/', organize_by_month=False)
        url = storage.upload_file(io.BytesIO(b'x'), 'a.png', 'image/png', 'logos')

        assert url.startswith('https://api.example.com/uploads/logos/')
        assert storage.file_exists(url)

    def test_traversal_urls_are_ignored(self, tmp_path):
        storage = LocalFileStorage(str(tmp_path / 'base'))

        assert storage.open_file('/uploads/../../secret') is None
        assert storage.file_exists('/elsewhere/file') is False
        storage.delete_file('/uploads/../../secret')

    def test_missing_file(self, tmp_path):
        storage = LocalFileStorage(str(tmp_path))
        assert storage.open_file('/uploads/general/nope.png') is None
        storage.delete_file('/uploads/general/nope.png')


class TestS3FileStorage:

    def _storage(self):
        client = MagicMock()
        return S3FileStorage('bucket', organize_by_month=False, client=client), client

    def test_upload(self):
        storage, client = self._storage()

        url = storage.upload_file(io.BytesIO(b'data'), 'logo.png', 'image/png', 'logos', 'pickleball')

        assert url.startswith('https://bucket.s3.amazonaws.com/logos/pickleball/')
        args, kwargs = client.upload_fileobj.call_args
        assert args[1] == 'bucket'
        assert args[2] == url.split('.com/', 1)[1]
        assert kwargs['ExtraArgs']['ContentType'] == 'image/png'

    def test_upload_failure(self):
        storage, client = self._storage()
        client.upload_fileobj.side_effect = _client_error('AccessDenied', 'PutObject')

        with pytest.raises(StorageError):
            storage.upload_file(io.BytesIO(b'data'), 'logo.png', 'image/png', 'logos')

    def test_delete(self):
        storage, client = self._storage()
        storage.delete_file('https://bucket.s3.amazonaws.com/logos/a.png')
        client.delete_object.assert_called_once_with(Bucket='bucket', Key='logos/a.png')

    def test_open_missing_object(self):
        storage, client = self._storage()
        client.get_object.side_effect = _client_error('NoSuchKey')

        assert storage.open_file('https://bucket.s3.amazonaws.com/logos/a.png') is None

    def test_open_other_error(self):
        storage, client = self._storage()
        client.get_object.side_effect = _client_error('AccessDenied')

        with pytest.raises(StorageError):
            storage.open_file('https://bucket.s3.amazonaws.com/logos/a.png')

    def test_file_exists(self):
        storage, client = self._storage()
        assert storage.file_exists('logos/a.png') is True

        client.head_object.side_effect = _client_error('404', 'HeadObject')
        assert storage.file_exists('logos/a.png') is False

    def test_key_from_url(self):
        assert S3FileStorage.key_from_url('https://bucket.s3.amazonaws.com/a/b.png') == 'a/b.png'
        assert S3FileStorage.key_from_url('/a/b.png') == 'a/b.png'
        assert S3FileStorage.key_from_url('') is None


class TestCreateStorage:

    def test_local_default(self, tmp_path):
        storage = create_storage({'STORAGE_LOCAL_PATH': str(tmp_path)})
        assert isinstance(storage, LocalFileStorage)

    def test_s3(self):
        storage = create_storage({'STORAGE_TYPE': 'S3', 'AWS_BUCKET_NAME': 'bucket'})
        assert isinstance(storage, S3FileStorage)
        assert storage.bucket_name == 'bucket'

    def test_unknown_falls_back_to_local(self, tmp_path):
        storage = create_storage({'STORAGE_TYPE': 'ftp', 'STORAGE_LOCAL_PATH': str(tmp_path)})
        assert isinstance(storage, LocalFileStorage)
