"""Client side of the upload flow.

Uploads go through a `RemoteConfig`, which knows the server and holds the
HTTP session. Nothing is retried; a failed attempt raises `UploadError`.
"""
import logging
import mimetypes
import typing

import requests

from freeimages.component.config import RemoteConfig
from freeimages.models import IncompleteConfigError
from freeimages.models import MissingFileError
from freeimages.models import UploadError


logger = logging.getLogger(__name__)

UPLOAD_TIMEOUT = 60


def guess_content_type(filename: str) -> str:
    mime, _ = mimetypes.guess_type(filename)
    return mime or 'application/octet-stream'


def credential_headers(remote: RemoteConfig) -> typing.Dict[str, str]:
    storage = remote.get_storage_config()
    cloudflare = storage['cloudflare']
    return {
        'x-account-id': cloudflare['accountId'],
        'x-access-key-id': cloudflare['accessKeyId'],
        'x-secret-access-key': cloudflare['secretAccessKey'],
        'x-bucket-name': cloudflare['bucketName'],
        'x-upload-path': storage['upload']['path'],
        'x-public-domain': cloudflare['publicDomain'],
    }


def _check_ready(remote: RemoteConfig, content: bytes) -> None:
    remote.init()
    if not content:
        raise MissingFileError('Please choose a file to upload.')
    if not remote.is_config_complete():
        raise IncompleteConfigError('Storage is not configured yet. Set it up in the admin settings first.')


def _post(remote: RemoteConfig, path: str, action: str, **kwargs) -> dict:
    try:
        req = remote.session.post(remote.url(path), timeout=UPLOAD_TIMEOUT, **kwargs)
    except requests.exceptions.RequestException as ex:
        raise UploadError(f'Failed to {action}: {ex}') from ex

    try:
        result = req.json()
    except ValueError:
        result = {}
    if not isinstance(result, dict):
        result = {}
    if req.status_code != 200 or not result.get('success'):
        error = result.get('error')
        if not isinstance(error, str) or not error:
            error = f'Failed to {action} (status code {req.status_code})'
        raise UploadError(error)
    return result


def upload_presigned(
    remote: RemoteConfig,
    filename: str,
    content: bytes,
    content_type: typing.Optional[str] = None,
    via_proxy: bool = False,
) -> str:
    """Upload an image through a pre-signed URL and return its public URL.

    The server hands out the URL; the image is then PUT straight to the
    bucket, or through the server's proxy endpoint if `via_proxy` is set.
    """
    _check_ready(remote, content)
    content_type = content_type or guess_content_type(filename)

    result = _post(
        remote,
        '/api/upload',
        'get an upload URL',
        files={'file': (filename, content, content_type)},
        headers=credential_headers(remote),
    )
    logger.debug('Got upload URL for %s', result['publicUrl'])

    if via_proxy:
        _post(
            remote,
            '/api/upload/proxy',
            'upload through the server',
            files={'file': (filename, content, content_type)},
            data={
                'signedUrl': result['signedUrl'],
                'contentType': result['contentType'],
            },
        )
    else:
        try:
            req = requests.put(
                result['signedUrl'],
                data=content,
                headers={'Content-Type': result['contentType']},
                timeout=UPLOAD_TIMEOUT,
            )
        except requests.exceptions.RequestException as ex:
            raise UploadError(f'Upload failed: {ex}') from ex
        if not req.ok:
            raise UploadError(f'Upload failed: {req.status_code} {req.reason}')

    return result['publicUrl']


def upload_direct(
    remote: RemoteConfig,
    filename: str,
    content: bytes,
    content_type: typing.Optional[str] = None,
) -> str:
    """Have the server store the image and return its public URL."""
    _check_ready(remote, content)
    result = _post(
        remote,
        '/api/upload/direct',
        'upload',
        files={'file': (filename, content, content_type or guess_content_type(filename))},
    )
    return result['publicUrl']
