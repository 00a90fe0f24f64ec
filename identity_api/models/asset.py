"""Uploaded file records."""

from datetime import datetime
from identity_api import db

STORAGE_LOCAL = 'local'
STORAGE_S3 = 's3'


class Asset(db.Model):
    """An uploaded image or document.

    The file itself lives on local disk or in S3; storage_url points at it
    and storage_type says which backend wrote it.
    """

    __tablename__ = 'assets'

    id = db.Column(db.Integer, primary_key=True)
    file_name = db.Column(db.String(255), nullable=False)
    content_type = db.Column(db.String(100), nullable=False)
    file_size = db.Column(db.BigInteger, nullable=False, default=0)
    storage_url = db.Column(db.String(1000), nullable=False, default='')
    storage_type = db.Column(db.String(20), nullable=False, default=STORAGE_LOCAL)
    category = db.Column(db.String(50), nullable=True, index=True)  # e.g. 'logos', 'avatars'
    site_key = db.Column(db.String(50), nullable=True, index=True)
    uploaded_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    is_public = db.Column(db.Boolean, default=True, nullable=False)

    @property
    def public_url(self):
        """URL clients should use: S3 objects directly, local files through the API."""
        if self.storage_type == STORAGE_S3 and self.storage_url.startswith('https://'):
            return self.storage_url
        return f'/asset/{self.id}'

    def to_dict(self):
        return {
            'id': self.id,
            'fileName': self.file_name,
            'contentType': self.content_type,
            'fileSize': self.file_size,
            'storageType': self.storage_type,
            'category': self.category,
            'siteKey': self.site_key,
            'uploadedBy': self.uploaded_by,
            'isPublic': self.is_public,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'url': self.public_url,
        }

    def __repr__(self):
        return f'<Asset {self.id} {self.file_name}>'
