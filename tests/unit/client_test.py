from unittest import mock

import pytest
import requests

from freeimages import client
from freeimages.component.config import ConfigUpdateError
from freeimages.component.config import LoginError
from freeimages.component.config import merge
from freeimages.component.config import redact
from freeimages.component.config import RemoteConfig
from freeimages.component.template import DEFAULT_CONFIG
from freeimages.models import IncompleteConfigError
from freeimages.models import MissingFileError
from freeimages.models import UploadError
from testing import COMPLETE_STORAGE
from testing import PNG_CONTENT


SAFE_CONFIG = redact(merge(DEFAULT_CONFIG, {'storage': COMPLETE_STORAGE}))

UPLOAD_RESULT = {
    'success': True,
    'signedUrl': 'https://my-bucket.a1b2c3d4e5f6.r2.cloudflarestorage.com/uploads/1-abc.png?X-Amz-Signature=x',
    'publicUrl': 'https://images.example.com/uploads/1-abc.png',
    'contentType': 'image/png',
}


def _response(status_code=200, json=None):
    response = mock.Mock(status_code=status_code, ok=status_code < 400)
    if json is None:
        response.json.side_effect = ValueError('No JSON')
    else:
        response.json.return_value = json
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(str(status_code))
    return response


@pytest.fixture
def session():
    return mock.Mock(spec=requests.Session)


@pytest.fixture
def remote(session):
    return RemoteConfig('http://freeimages.test/', session=session)


def test_defaults_before_init(remote, session):
    assert remote.get_config() == DEFAULT_CONFIG
    assert not remote.is_config_complete()
    assert not session.get.called


def test_init_fetches_once(remote, session):
    session.get.return_value = _response(json=SAFE_CONFIG)

    remote.init()
    remote.init()

    session.get.assert_called_once_with('http://freeimages.test/api/config', timeout=mock.ANY)
    assert remote.get_config() == SAFE_CONFIG
    assert remote.is_config_complete()


@pytest.mark.parametrize(
    'outcome', (
        requests.exceptions.ConnectionError('refused'),
        _response(status_code=500, json={'error': 'oops'}),
        _response(json=None),
    ),
)
def test_init_falls_back_to_defaults(remote, session, outcome):
    if isinstance(outcome, Exception):
        session.get.side_effect = outcome
    else:
        session.get.return_value = outcome

    remote.init()
    remote.init()

    assert remote.get_config() == DEFAULT_CONFIG
    assert session.get.call_count == 1


def test_update_config(remote, session):
    updated = merge(SAFE_CONFIG, {'storage': {'cloudflare': {'bucketName': 'new-bucket'}}})
    session.post.return_value = _response(json=updated)

    assert remote.update_storage_config({'cloudflare': {'bucketName': 'new-bucket'}}) == updated

    session.post.assert_called_once_with(
        'http://freeimages.test/api/config',
        json={'storage': {'cloudflare': {'bucketName': 'new-bucket'}}},
        timeout=mock.ANY,
    )
    assert remote.get_config() == updated


def test_update_config_rejected_keeps_cache(remote, session):
    session.get.return_value = _response(json=SAFE_CONFIG)
    remote.init()
    session.post.return_value = _response(status_code=401, json={'error': 'Unauthorized'})

    with pytest.raises(ConfigUpdateError) as excinfo:
        remote.update_app_config({'site': {'title': 'x'}})

    assert str(excinfo.value) == 'Unauthorized'
    assert remote.get_config() == SAFE_CONFIG


def test_update_config_network_error_keeps_cache(remote, session):
    session.post.side_effect = requests.exceptions.ConnectionError('refused')

    with pytest.raises(ConfigUpdateError):
        remote.update_config({'app': {'site': {'title': 'x'}}})

    assert remote.get_config() == DEFAULT_CONFIG


def test_login(remote, session):
    session.post.return_value = _response(json={'success': True})
    remote.login('admin')
    session.post.assert_called_once_with(
        'http://freeimages.test/api/login',
        json={'password': 'admin'},
        timeout=mock.ANY,
    )


def test_login_wrong_password(remote, session):
    session.post.return_value = _response(status_code=401, json={'success': False, 'error': 'Incorrect password'})
    with pytest.raises(LoginError) as excinfo:
        remote.login('nope')
    assert str(excinfo.value) == 'Incorrect password'


def test_upload_presigned_requires_complete_config(remote, session):
    session.get.return_value = _response(json=DEFAULT_CONFIG)

    with pytest.raises(IncompleteConfigError):
        client.upload_presigned(remote, 'photo.png', PNG_CONTENT)

    assert not session.post.called


def test_upload_presigned_requires_content(remote, session):
    session.get.return_value = _response(json=SAFE_CONFIG)
    with pytest.raises(MissingFileError):
        client.upload_presigned(remote, 'photo.png', b'')
    assert not session.post.called


def test_upload_presigned(remote, session):
    session.get.return_value = _response(json=SAFE_CONFIG)
    session.post.return_value = _response(json=UPLOAD_RESULT)

    with mock.patch.object(requests, 'put') as put:
        put.return_value = _response()
        url = client.upload_presigned(remote, 'photo.png', PNG_CONTENT)

    assert url == UPLOAD_RESULT['publicUrl']
    (path,), kwargs = session.post.call_args
    assert path == 'http://freeimages.test/api/upload'
    assert kwargs['files'] == {'file': ('photo.png', PNG_CONTENT, 'image/png')}
    assert kwargs['headers']['x-bucket-name'] == 'my-bucket'
    assert kwargs['headers']['x-secret-access-key'] == '******'
    assert kwargs['headers']['x-upload-path'] == 'uploads/'
    put.assert_called_once_with(
        UPLOAD_RESULT['signedUrl'],
        data=PNG_CONTENT,
        headers={'Content-Type': 'image/png'},
        timeout=client.UPLOAD_TIMEOUT,
    )


def test_upload_presigned_server_error(remote, session):
    session.get.return_value = _response(json=SAFE_CONFIG)
    session.post.return_value = _response(
        status_code=500,
        json={'success': False, 'error': 'Failed to generate a pre-signed URL: bad'},
    )

    with mock.patch.object(requests, 'put') as put:
        with pytest.raises(UploadError) as excinfo:
            client.upload_presigned(remote, 'photo.png', PNG_CONTENT)

    assert str(excinfo.value) == 'Failed to generate a pre-signed URL: bad'
    assert not put.called


@pytest.mark.parametrize(
    ('put_outcome', 'message'), (
        (_response(status_code=403), 'Upload failed: 403'),
        (requests.exceptions.ConnectionError('reset'), 'Upload failed: reset'),
    ),
)
def test_upload_presigned_put_fails(remote, session, put_outcome, message):
    session.get.return_value = _response(json=SAFE_CONFIG)
    session.post.return_value = _response(json=UPLOAD_RESULT)

    with mock.patch.object(requests, 'put') as put:
        if isinstance(put_outcome, Exception):
            put.side_effect = put_outcome
        else:
            put.return_value = put_outcome
        with pytest.raises(UploadError) as excinfo:
            client.upload_presigned(remote, 'photo.png', PNG_CONTENT)

    assert str(excinfo.value).startswith(message)
    assert put.call_count == 1


def test_upload_presigned_via_proxy(remote, session):
    session.get.return_value = _response(json=SAFE_CONFIG)
    session.post.side_effect = [_response(json=UPLOAD_RESULT), _response(json={'success': True})]

    with mock.patch.object(requests, 'put') as put:
        url = client.upload_presigned(remote, 'photo.png', PNG_CONTENT, via_proxy=True)

    assert url == UPLOAD_RESULT['publicUrl']
    assert not put.called
    (path,), kwargs = session.post.call_args
    assert path == 'http://freeimages.test/api/upload/proxy'
    assert kwargs['data'] == {'signedUrl': UPLOAD_RESULT['signedUrl'], 'contentType': 'image/png'}


def test_upload_direct(remote, session):
    session.get.return_value = _response(json=SAFE_CONFIG)
    session.post.return_value = _response(json={'success': True, 'publicUrl': UPLOAD_RESULT['publicUrl']})

    assert client.upload_direct(remote, 'photo.png', PNG_CONTENT) == UPLOAD_RESULT['publicUrl']
    (path,), kwargs = session.post.call_args
    assert path == 'http://freeimages.test/api/upload/direct'
    assert kwargs['files'] == {'file': ('photo.png', PNG_CONTENT, 'image/png')}


def test_init_falls_back_when_body_is_not_a_config(remote, session):
    session.get.return_value = _response(json=['not', 'a', 'config'])
    remote.init()
    assert remote.get_config() == DEFAULT_CONFIG


def test_init_fills_in_missing_fields(remote, session):
    session.get.return_value = _response(json={'app': {'site': {'title': 'Mine'}}})
    remote.init()
    assert remote.get_config()['app']['site']['title'] == 'Mine'
    assert remote.get_config()['storage'] == DEFAULT_CONFIG['storage']


def test_update_config_invalid_body_keeps_cache(remote, session):
    session.post.return_value = _response(json={'storage': None})
    with pytest.raises(ConfigUpdateError):
        remote.update_config({'app': {'site': {'title': 'x'}}})
    assert remote.get_config() == DEFAULT_CONFIG


def test_logout(remote, session):
    session.cookies = mock.Mock()
    session.post.return_value = _response(json={'success': True})
    remote.logout()
    session.post.assert_called_once_with('http://freeimages.test/api/logout', timeout=mock.ANY)
    assert session.cookies.clear.called


def test_logout_network_error(remote, session):
    session.cookies = mock.Mock()
    session.post.side_effect = requests.exceptions.ConnectionError('refused')
    with pytest.raises(LoginError):
        remote.logout()
    assert session.cookies.clear.called


@pytest.mark.parametrize('body', (['unexpected'], {'success': False, 'error': ['not', 'a', 'string']}))
def test_upload_direct_unexpected_error_body(remote, session, body):
    session.get.return_value = _response(json=SAFE_CONFIG)
    session.post.return_value = _response(status_code=500, json=body)

    with pytest.raises(UploadError) as excinfo:
        client.upload_direct(remote, 'photo.png', PNG_CONTENT)
    assert str(excinfo.value) == 'Failed to upload (status code 500)'
