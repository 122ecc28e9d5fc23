"""Turn an uploaded image into a public URL.

There are two ways to get an image into the bucket:

1. Pre-signed: the server hands out a short-lived URL scoped to one key and
   content type, and the client PUTs the image there itself.
2. Server-mediated: the server writes the image to the bucket directly.
"""
import dataclasses
import typing
import urllib.parse

import requests

from freeimages.component.backends import R2Backend
from freeimages.component.config import strip_protocol
from freeimages.component.template import REQUIRED_STORAGE_FIELDS
from freeimages.component.template import SECRET_MASK
from freeimages.models import IncompleteConfigError
from freeimages.models import InvalidSignedUrlError
from freeimages.models import StorageError
from freeimages.models import UploadedFile


PROXY_TIMEOUT = 60
R2_HOST_SUFFIX = '.r2.cloudflarestorage.com'

# Request headers a client may use to supply storage credentials.
CREDENTIAL_HEADERS = {
    'x-account-id': 'accountId',
    'x-access-key-id': 'accessKeyId',
    'x-secret-access-key': 'secretAccessKey',
    'x-bucket-name': 'bucketName',
    'x-public-domain': 'publicDomain',
}


@dataclasses.dataclass(frozen=True)
class SignedUpload:
    signed_url: str
    public_url: str
    content_type: str


def public_url(public_domain: str, key: str) -> str:
    return f'https://{strip_protocol(public_domain)}/{key}'


def storage_from_headers(headers: typing.Mapping[str, str], storage: typing.Mapping) -> dict:
    """Pick the storage settings for an upload request.

    Credentials sent in request headers are only used when they include a real
    secret key, and then all of them are taken from the headers. Otherwise
    (no secret, or the masked one clients get from the API) the stored
    settings are used unchanged, so the stored secret never signs a request
    for a bucket, account or path the caller picked.
    """
    secret = headers.get('x-secret-access-key')
    if not secret or secret == SECRET_MASK:
        return {
            'cloudflare': dict(storage['cloudflare']),
            'upload': dict(storage['upload']),
        }

    cloudflare = {field: headers.get(header) or '' for header, field in CREDENTIAL_HEADERS.items()}
    upload = dict(storage['upload'])
    if headers.get('x-upload-path'):
        upload['path'] = headers['x-upload-path']
    return {'cloudflare': cloudflare, 'upload': upload}


def require_complete(cloudflare: typing.Mapping[str, str]) -> None:
    missing = [field for field in REQUIRED_STORAGE_FIELDS if not cloudflare.get(field)]
    if missing:
        raise IncompleteConfigError(
            'Storage is not configured yet (missing: {}).'.format(', '.join(missing)),
        )


def presign_upload(storage: typing.Mapping, uf: UploadedFile) -> SignedUpload:
    cloudflare = storage['cloudflare']
    require_complete(cloudflare)
    key = uf.key(storage['upload']['path'])
    return SignedUpload(
        signed_url=R2Backend(cloudflare).generate_upload_url(key, uf.mimetype),
        public_url=public_url(cloudflare['publicDomain'], key),
        content_type=uf.mimetype,
    )


def store_upload(storage: typing.Mapping, uf: UploadedFile) -> str:
    """Write the image to the bucket and return its public URL."""
    cloudflare = storage['cloudflare']
    require_complete(cloudflare)
    key = uf.key(storage['upload']['path'])
    R2Backend(cloudflare).store_object(key, uf)
    return public_url(cloudflare['publicDomain'], key)


def proxy_upload(signed_url: str, uf: UploadedFile, content_type: typing.Optional[str] = None) -> None:
    """PUT an image to a pre-signed URL on behalf of a client."""
    parsed = urllib.parse.urlparse(signed_url)
    if parsed.scheme != 'https' or not (parsed.hostname or '').endswith(R2_HOST_SUFFIX):
        raise InvalidSignedUrlError('Only R2 upload URLs can be proxied.')

    try:
        req = requests.put(
            signed_url,
            data=uf.open_file,
            headers={'Content-Type': content_type or uf.mimetype},
            timeout=PROXY_TIMEOUT,
        )
    except requests.exceptions.RequestException as ex:
        raise StorageError(f'Proxy request failed: {ex}') from ex
    if not req.ok:
        raise StorageError(f'Upload failed: {req.status_code} {req.reason}')
