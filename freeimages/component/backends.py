"""Object storage backend.

Images are stored in a Cloudflare R2 bucket through its S3-compatible API.
Credentials come from the site configuration rather than the environment, so
they can be changed from the admin API without a restart.
"""
import typing

import boto3
import botocore.config
import botocore.exceptions

from freeimages.models import StorageError
from freeimages.models import UploadedFile


R2_ENDPOINT_URL = 'https://{account_id}.r2.cloudflarestorage.com'

# Pre-signed upload URLs are valid for one hour.
SIGNED_URL_EXPIRES_IN = 3600


class R2Backend:
    """Storage backend which writes to R2 using boto3."""

    def __init__(self, cloudflare: typing.Mapping[str, str]):
        self.cloudflare = cloudflare

    @property
    def bucket(self) -> str:
        return self.cloudflare['bucketName'].strip()

    def _client(self):
        # We always use a new session in case the keys have been changed in the config.
        session = boto3.session.Session()
        return session.client(
            's3',
            region_name='auto',
            endpoint_url=R2_ENDPOINT_URL.format(account_id=self.cloudflare['accountId'].strip()),
            aws_access_key_id=self.cloudflare['accessKeyId'].strip(),
            aws_secret_access_key=self.cloudflare['secretAccessKey'].strip(),
            config=botocore.config.Config(signature_version='s3v4'),
        )

    def generate_upload_url(self, key: str, content_type: str) -> str:
        """Return a URL the client can PUT exactly this key and content type to."""
        try:
            return self._client().generate_presigned_url(
                'put_object',
                Params={
                    'Bucket': self.bucket,
                    'Key': key,
                    'ContentType': content_type,
                },
                ExpiresIn=SIGNED_URL_EXPIRES_IN,
            )
        except (botocore.exceptions.BotoCoreError, botocore.exceptions.ClientError) as ex:
            raise StorageError(f'Failed to generate a pre-signed URL: {ex}') from ex

    def store_object(self, key: str, obj: UploadedFile) -> None:
        try:
            self._client().put_object(
                Bucket=self.bucket,
                Key=key,
                Body=obj.open_file,
                ContentType=obj.mimetype,
            )
        except (botocore.exceptions.BotoCoreError, botocore.exceptions.ClientError) as ex:
            raise StorageError(f'Failed to upload to R2: {ex}') from ex
        obj.open_file.seek(0)
