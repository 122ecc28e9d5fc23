import hmac

from flask import jsonify
from flask import request
from flask import session

from freeimages.app import app
from freeimages.component.config import check_patch
from freeimages.component.config import ConfigStore
from freeimages.component.config import redact
from freeimages.component.config import StoredConfig
from freeimages.component.config import strip_masked_secret
from freeimages.component.uploads import presign_upload
from freeimages.component.uploads import proxy_upload
from freeimages.component.uploads import require_complete
from freeimages.component.uploads import storage_from_headers
from freeimages.component.uploads import store_upload
from freeimages.models import MissingFileError
from freeimages.models import UploadedFile
from freeimages.models import UploadError


def stored_config():
    return StoredConfig(ConfigStore(app.config['CONFIG_FILE_PATH']))


def is_admin():
    return session.get('authenticated') is True


@app.errorhandler(UploadError)
def upload_error(ex):
    app.logger.warning('Upload failed: %s', ex)
    return jsonify({
        'success': False,
        'error': str(ex),
    }), ex.status_code


@app.route('/api/config', methods={'GET'})
def get_config():
    return jsonify(stored_config().get_safe_config())


@app.route('/api/config', methods={'POST'})
def update_config():
    if not is_admin():
        return jsonify({'error': 'Unauthorized'}), 401

    patch = request.get_json(silent=True)
    if not isinstance(patch, dict):
        return jsonify({'error': 'Expected a JSON object'}), 400
    try:
        check_patch(patch)
    except ValueError as ex:
        return jsonify({'error': str(ex)}), 400

    try:
        config = stored_config().update_config(strip_masked_secret(patch))
    except OSError:
        app.logger.exception('Unable to save config')
        return jsonify({'error': 'Unable to save config'}), 500
    return jsonify(redact(config))


@app.route('/api/login', methods={'POST'})
def login():
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        password = data.get('password')
    else:
        password = request.form.get('password')
    if not isinstance(password, str):
        password = ''

    admin_password = stored_config().get_app_config()['security']['adminPassword']
    if not hmac.compare_digest(password.encode('utf8'), admin_password.encode('utf8')):
        return jsonify({'success': False, 'error': 'Incorrect password'}), 401

    session.permanent = True
    session['authenticated'] = True
    return jsonify({'success': True})


@app.route('/api/logout', methods={'POST'})
def logout():
    session.pop('authenticated', None)
    return jsonify({'success': True})


@app.route('/api/images', methods={'GET'})
def images():
    config = stored_config()
    return jsonify({
        'domains': config.get_image_domains(),
        'formats': config.get_image_formats(),
    })


@app.route('/api/upload', methods={'POST'})
def upload():
    """Return a pre-signed URL the client can upload the image to."""
    if 'file' not in request.files:
        raise MissingFileError('No file was uploaded.')

    storage = storage_from_headers(request.headers, stored_config().get_storage_config())
    require_complete(storage['cloudflare'])

    with UploadedFile.from_http_file(request.files['file'], storage['upload']) as uf:
        signed = presign_upload(storage, uf)

    app.logger.info('Issued upload URL for %s', signed.public_url)
    return jsonify({
        'success': True,
        'signedUrl': signed.signed_url,
        'publicUrl': signed.public_url,
        'contentType': signed.content_type,
    })


@app.route('/api/upload/direct', methods={'POST'})
def upload_direct():
    """Store the image in the bucket from the server."""
    if 'file' not in request.files:
        raise MissingFileError('No file was uploaded.')

    storage = stored_config().get_storage_config()
    require_complete(storage['cloudflare'])

    with UploadedFile.from_http_file(request.files['file'], storage['upload']) as uf:
        url = store_upload(storage, uf)

    app.logger.info('Stored %s', url)
    return jsonify({
        'success': True,
        'publicUrl': url,
    })


@app.route('/api/upload/proxy', methods={'POST'})
def upload_proxy():
    """Upload to a pre-signed URL for clients which can't reach the bucket."""
    signed_url = request.form.get('signedUrl')
    if 'file' not in request.files or not signed_url:
        raise MissingFileError('A file and a signed URL are required.')

    upload_config = stored_config().get_storage_config()['upload']
    with UploadedFile.from_http_file(request.files['file'], upload_config) as uf:
        proxy_upload(signed_url, uf, request.form.get('contentType'))

    return jsonify({'success': True})
