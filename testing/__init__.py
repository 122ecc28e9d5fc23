import json
import re

from freeimages.component.config import merge
from freeimages.component.template import default_config


PNG_CONTENT = b'\x89PNG\r\n\x1a\n' + b'\x00' * 64

COMPLETE_STORAGE = {
    'cloudflare': {
        'accountId': 'a1b2c3d4e5f6',
        'accessKeyId': 'AKIAEXAMPLE',
        'secretAccessKey': 'hunter2',
        'bucketName': 'my-bucket',
        'publicDomain': 'images.example.com',
    },
}

PUBLIC_URL_RE = re.compile(
    r'^https://images\.example\.com/uploads/(?P<timestamp>\d+)-(?P<token>[0-9a-z]{13})\.png$',
)


def write_config(path, patch=None):
    """Write the default document with `patch` merged in."""
    config = merge(default_config(), patch or {})
    with open(path, 'w') as f:
        json.dump(config, f)
    return config


def read_config(path):
    with open(path) as f:
        return json.load(f)
