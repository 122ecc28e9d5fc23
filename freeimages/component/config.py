"""Site configuration.

The configuration is a single JSON document (see `template.DEFAULT_CONFIG`).
It can be accessed two ways which share the same read/update interface:

* `StoredConfig` reads and writes the document on disk, and is what the server
  uses.
* `RemoteConfig` talks to a running server over HTTP and caches the (redacted)
  document in memory, and is what clients use.
"""
import collections.abc
import copy
import json
import logging
import os
import re
import typing

import requests

from freeimages.component.template import DEFAULT_CONFIG
from freeimages.component.template import default_config
from freeimages.component.template import REQUIRED_STORAGE_FIELDS
from freeimages.component.template import SECRET_MASK


logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30


class ConfigUpdateError(Exception):
    pass


class LoginError(Exception):
    pass


def merge(target: typing.Mapping, patch: typing.Mapping) -> dict:
    """Deep merge `patch` into `target`, returning a new document.

    Nested mappings are merged key by key. Anything else in the patch
    (including lists) replaces the target value outright.
    """
    merged = dict(target)
    for key, value in patch.items():
        if isinstance(value, collections.abc.Mapping):
            existing = merged.get(key)
            if not isinstance(existing, collections.abc.Mapping):
                existing = {}
            merged[key] = merge(existing, value)
        else:
            merged[key] = value
    return merged


def redact(config: typing.Mapping) -> dict:
    """Return a copy of the document which is safe to send to a client."""
    redacted = copy.deepcopy(dict(config))
    cloudflare = redacted['storage']['cloudflare']
    cloudflare['secretAccessKey'] = SECRET_MASK if cloudflare.get('secretAccessKey') else ''
    return redacted


def strip_masked_secret(patch: typing.Mapping) -> dict:
    """Drop a masked secret from an update so the stored secret survives.

    Clients only ever see the mask, so a form which round-trips the whole
    storage section would otherwise overwrite the real key with it.
    """
    patch = copy.deepcopy(dict(patch))
    storage = patch.get('storage')
    if isinstance(storage, dict):
        cloudflare = storage.get('cloudflare')
        if isinstance(cloudflare, dict) and cloudflare.get('secretAccessKey') == SECRET_MASK:
            del cloudflare['secretAccessKey']
    return patch


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_value(name: str, value, default) -> None:
    if isinstance(default, collections.abc.Mapping):
        if not isinstance(value, collections.abc.Mapping):
            raise ValueError(f'"{name}" must be an object')
        check_patch(value, default, prefix=name + '.')
    elif isinstance(default, list):
        if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
            raise ValueError(f'"{name}" must be a list of strings')
    elif isinstance(default, str):
        if not isinstance(value, str):
            raise ValueError(f'"{name}" must be a string')
    elif _is_number(default):
        if not _is_number(value):
            raise ValueError(f'"{name}" must be a number')


def check_patch(patch: typing.Mapping, template: typing.Mapping = DEFAULT_CONFIG, prefix: str = '') -> None:
    """Raise ValueError if the patch doesn't fit the shape of the template.

    Fields the template knows about must keep their type (any number is fine
    for a numeric field). Fields it doesn't know about are left alone.
    """
    for key, value in patch.items():
        if key in template:
            _check_value(prefix + key, value, template[key])


def strip_protocol(domain: str) -> str:
    return re.sub(r'^https?://', '', domain)


def image_domains(config: typing.Mapping) -> typing.List[str]:
    """Hosts images may be served from: the configured domains plus the
    storage public domain, without duplicates.
    """
    domains = []
    for domain in config['app']['images'].get('domains') or ():
        if domain not in domains:
            domains.append(domain)

    public_domain = config['storage']['cloudflare'].get('publicDomain')
    if public_domain:
        public_domain = strip_protocol(public_domain)
        if public_domain not in domains:
            domains.append(public_domain)

    return domains


def is_config_complete(config: typing.Mapping) -> bool:
    cloudflare = config['storage']['cloudflare']
    return all(
        isinstance(cloudflare.get(field), str) and cloudflare[field] != ''
        for field in REQUIRED_STORAGE_FIELDS
    )


class ConfigStore:
    """Reads and writes the configuration document as a single JSON file.

    There is no locking; when two updates race, the last write wins.
    """

    def __init__(self, path):
        self.path = path

    def load(self) -> dict:
        """Return the stored document, falling back to the defaults.

        A missing file is created with the defaults. A file which can't be
        read or parsed is logged and left alone.
        """
        if not os.path.exists(self.path):
            config = default_config()
            try:
                self.save(config)
            except OSError:
                logger.exception('Unable to create default config file %s', self.path)
            return config

        try:
            with open(self.path) as f:
                loaded = json.load(f)
            if not isinstance(loaded, dict):
                raise ValueError(
                    f'Expected to parse an object, but the JSON was type "{type(loaded).__name__}" instead.',
                )
            check_patch(loaded)
        except (OSError, ValueError):
            logger.exception('Unable to read config file %s, using defaults', self.path)
            return default_config()

        # Fill in anything added to the template since the file was written.
        return merge(default_config(), loaded)

    def save(self, config: typing.Mapping) -> None:
        with open(self.path, 'w') as f:
            json.dump(config, f, indent=2)

    def update(self, patch: typing.Mapping) -> dict:
        config = merge(self.load(), patch)
        self.save(config)
        return config


class ConfigFacade:
    """Read/update interface shared by the stored and remote variants."""

    def get_config(self) -> dict:
        raise NotImplementedError()

    def update_config(self, patch: typing.Mapping) -> dict:
        raise NotImplementedError()

    def get_storage_config(self) -> dict:
        return self.get_config()['storage']

    def get_app_config(self) -> dict:
        return self.get_config()['app']

    def update_storage_config(self, patch: typing.Mapping) -> dict:
        return self.update_config({'storage': patch})

    def update_app_config(self, patch: typing.Mapping) -> dict:
        return self.update_config({'app': patch})

    def is_config_complete(self) -> bool:
        return is_config_complete(self.get_config())


class StoredConfig(ConfigFacade):
    """Configuration backed by a `ConfigStore`. Every read goes to disk."""

    def __init__(self, store: ConfigStore):
        self.store = store

    def get_config(self):
        return self.store.load()

    def update_config(self, patch):
        return self.store.update(patch)

    def get_image_domains(self) -> typing.List[str]:
        return image_domains(self.get_config())

    def get_image_formats(self) -> typing.List[str]:
        return self.get_config()['app']['images']['formats']

    def get_safe_config(self) -> dict:
        return redact(self.get_config())


def _error_from_response(req, default):
    try:
        error = req.json()['error']
    except (ValueError, KeyError, TypeError, IndexError):
        error = None
    if not isinstance(error, str) or not error:
        return f'{default} (status code {req.status_code})'
    return error


class RemoteConfig(ConfigFacade):
    """Configuration fetched from a running server.

    The document is cached after the first `init()`; reads never block. The
    secret access key is only ever seen masked.
    """

    def __init__(self, server: str, session: typing.Optional[requests.Session] = None):
        self.server = server.rstrip('/')
        # The session's cookie jar holds the admin login.
        self.session = session if session is not None else requests.Session()
        self._config = default_config()
        self._initialized = False

    def url(self, path: str) -> str:
        return self.server + path

    def init(self) -> None:
        if self._initialized:
            return
        try:
            req = self.session.get(self.url('/api/config'), timeout=REQUEST_TIMEOUT)
            req.raise_for_status()
            config = req.json()
            if not isinstance(config, dict):
                raise ValueError(f'Expected a config object, got "{type(config).__name__}"')
            check_patch(config)
            self._config = merge(default_config(), config)
        except (requests.exceptions.RequestException, ValueError):
            logger.exception('Unable to load config from %s, using defaults', self.server)
            self._config = default_config()
        self._initialized = True

    def get_config(self):
        return self._config

    def update_config(self, patch):
        try:
            req = self.session.post(self.url('/api/config'), json=patch, timeout=REQUEST_TIMEOUT)
        except requests.exceptions.RequestException as ex:
            raise ConfigUpdateError(f'Unable to update config: {ex}') from ex

        if req.status_code != 200:
            raise ConfigUpdateError(_error_from_response(req, 'Unable to update config'))

        try:
            config = req.json()
            if not isinstance(config, dict):
                raise ValueError(f'expected an object, got "{type(config).__name__}"')
            check_patch(config)
        except ValueError as ex:
            raise ConfigUpdateError(f'Server returned an invalid config: {ex}') from ex
        self._config = merge(default_config(), config)
        return self._config

    def login(self, password: str) -> None:
        try:
            req = self.session.post(
                self.url('/api/login'),
                json={'password': password},
                timeout=REQUEST_TIMEOUT,
            )
        except requests.exceptions.RequestException as ex:
            raise LoginError(f'Unable to log in: {ex}') from ex

        if req.status_code != 200:
            raise LoginError(_error_from_response(req, 'Unable to log in'))

    def logout(self) -> None:
        try:
            self.session.post(self.url('/api/logout'), timeout=REQUEST_TIMEOUT)
        except requests.exceptions.RequestException as ex:
            raise LoginError(f'Unable to log out: {ex}') from ex
        finally:
            self.session.cookies.clear()
