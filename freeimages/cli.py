"""Upload images to freeimages, or manage its configuration.

Two entry points are installed: "fimg" uploads images, "fimg-config" shows or
changes the server's configuration.
"""
import argparse
import getpass
import json
import os.path
import sys

from freeimages import version
from freeimages.client import upload_direct
from freeimages.client import upload_presigned
from freeimages.component.config import check_patch
from freeimages.component.config import ConfigUpdateError
from freeimages.component.config import LoginError
from freeimages.component.config import RemoteConfig
from freeimages.component.template import DEFAULT_CONFIG
from freeimages.models import UploadError

DESCRIPTION = '''\
freeimages is a simple image host backed by Cloudflare R2.

By default, a server running on http://localhost:5000 is used. You can specify
a different one with the --server option.

To make that permanent, you can create a config file with contents similar to:

    {"server": "https://images.my.corp"}

This file can be placed at either /etc/freeimages.json or
~/.config/freeimages.json.
'''


def bold(text):
    if sys.stdout.isatty():
        return '\033[1m{}\033[0m'.format(text)
    else:
        return text


def get_config():
    config = {'server': 'http://localhost:5000'}
    for path in ('/etc/freeimages.json', os.path.expanduser('~/.config/freeimages.json')):
        try:
            with open(path) as f:
                j = json.load(f)
                if not isinstance(j, dict):
                    raise ValueError(
                        'Expected to parse dict, but the JSON was type "{}" instead.'.format(type(j)),
                    )
                for key, value in j.items():
                    config[key] = value
        except FileNotFoundError:
            pass
        except Exception:
            print(bold('Error parsing config file "{}". Is it valid JSON?'.format(path)))
            raise
    return config


def _template_value(keys):
    node = DEFAULT_CONFIG
    for key in keys:
        if not isinstance(node, dict) or key not in node:
            return None
        node = node[key]
    return node


def parse_setting(setting):
    """Turn "storage.upload.path=img/" into a nested patch.

    Settings which are strings are always taken as-is. Anything else is
    parsed as JSON where possible so lists and numbers can be set.
    """
    path, sep, raw_value = setting.partition('=')
    if not sep or not path:
        raise argparse.ArgumentTypeError(f'expected KEY=VALUE, got "{setting}"')

    keys = path.split('.')
    if isinstance(_template_value(keys), str):
        value = raw_value
    else:
        try:
            value = json.loads(raw_value)
        except ValueError:
            value = raw_value

    patch = value
    for key in reversed(keys):
        patch = {key: patch}

    try:
        check_patch(patch)
    except ValueError as ex:
        raise argparse.ArgumentTypeError(str(ex)) from ex
    return patch


def upload(remote, paths, direct, via_proxy):
    for path in paths:
        if path == '-':
            filename, content = 'stdin', sys.stdin.buffer.read()
        else:
            filename = os.path.basename(path)
            try:
                with open(path, 'rb') as f:
                    content = f.read()
            except OSError as ex:
                print('Failed to upload {}: {}'.format(filename, ex))
                return 1

        try:
            if direct:
                url = upload_direct(remote, filename, content)
            else:
                url = upload_presigned(remote, filename, content, via_proxy=via_proxy)
        except UploadError as ex:
            print('Failed to upload {}: {}'.format(filename, ex))
            return 1

        print(bold(url))


class FreeImagesArgFormatter(
        argparse.ArgumentDefaultsHelpFormatter,
        argparse.RawDescriptionHelpFormatter,
):
    pass


def upload_main(argv=None):
    config = get_config()
    parser = argparse.ArgumentParser(
        description='Upload images to freeimages.\n\n' + DESCRIPTION,
        formatter_class=FreeImagesArgFormatter,
    )
    parser.add_argument('--server', default=config['server'], type=str, help='server to upload to')
    parser.add_argument('--version', action='version', version='%(prog)s {}'.format(version))
    parser.add_argument(
        '--direct', action='store_true',
        help='have the server store the image instead of uploading it to the bucket ourselves',
    )
    parser.add_argument(
        '--proxy', action='store_true',
        help='send the pre-signed upload through the server (for networks which cannot reach the bucket)',
    )
    parser.add_argument('file', type=str, nargs='+', help='path to image(s) to upload', default='-')
    args = parser.parse_args(argv)
    return upload(RemoteConfig(args.server), args.file, args.direct, args.proxy)


def config_main(argv=None):
    config = get_config()
    parser = argparse.ArgumentParser(
        description='Show or change the freeimages configuration.\n\n' + DESCRIPTION,
        formatter_class=FreeImagesArgFormatter,
    )
    parser.add_argument('--server', default=config['server'], type=str, help='server to configure')
    parser.add_argument('--version', action='version', version='%(prog)s {}'.format(version))
    parser.add_argument(
        '--password', type=str, default=config.get('password'),
        help='admin password (prompted for if needed and not given)',
    )
    parser.add_argument(
        'settings', type=parse_setting, nargs='*', metavar='KEY=VALUE',
        help='settings to change, e.g. storage.cloudflare.bucketName=my-bucket',
    )
    args = parser.parse_args(argv)

    remote = RemoteConfig(args.server)
    if not args.settings:
        remote.init()
        print(json.dumps(remote.get_config(), indent=2, sort_keys=True))
        if not remote.is_config_complete():
            print(bold('Storage is not fully configured; uploads will be rejected.'))
        return

    password = args.password
    if password is None:
        password = getpass.getpass('Admin password: ')

    try:
        remote.login(password)
        for patch in args.settings:
            remote.update_config(patch)
    except (LoginError, ConfigUpdateError) as ex:
        print('Failed to update config: {}'.format(ex))
        return 1

    print(json.dumps(remote.get_config(), indent=2, sort_keys=True))


if __name__ == '__main__':
    if sys.argv[0].endswith('fimg-config'):
        exit(config_main())
    else:
        exit(upload_main())
