"""Shape and default values of the site configuration.

The persisted document always has every field listed here; documents loaded
from disk are merged over this template.
"""
import copy


DEFAULT_CONFIG = {
    'storage': {
        'cloudflare': {
            'accountId': '',
            'accessKeyId': '',
            'secretAccessKey': '',
            'bucketName': '',
            # e.g. pub-xxxxx.r2.dev or a custom domain
            'publicDomain': '',
        },
        'upload': {
            'path': 'uploads/',
            'maxSize': 10,  # MB
            'allowedTypes': ['image/jpeg', 'image/png', 'image/gif', 'image/webp'],
        },
    },
    'app': {
        'site': {
            'title': 'FreeImages',
            'description': 'A simple image host',
            'theme': 'light',  # light, dark, system
            'url': 'http://localhost:3000',
        },
        'security': {
            'adminPassword': 'admin',
        },
        'images': {
            # the storage public domain is always added to these
            'domains': [],
            'formats': ['image/avif', 'image/webp'],
        },
    },
}

# Fields which must all be set before anything can be uploaded.
REQUIRED_STORAGE_FIELDS = (
    'accountId',
    'accessKeyId',
    'secretAccessKey',
    'bucketName',
    'publicDomain',
)

SECRET_MASK = '******'


def default_config():
    """Return a fresh copy of the default document, safe to mutate."""
    return copy.deepcopy(DEFAULT_CONFIG)
