import os
import shutil
import signal
import subprocess
import sys
import tempfile
import time
from pathlib import Path

import ephemeral_port_reserve
import pytest
import requests

from testing import write_config


PROJECT_ROOT = Path(__file__).parent.parent


def _templated_config(config_file_path):
    with (PROJECT_ROOT / 'settings' / 'test_r2.py').open('r') as f:
        return f.read().format(config_file_path=config_file_path)


def _wait_for_http(url):
    for _ in range(500):
        try:
            req = requests.get(url)
        except requests.exceptions.ConnectionError:  # pragma: no cover
            pass
        else:
            if req.status_code == 200:
                break
        time.sleep(0.01)  # pragma: no cover
    else:  # pragma: no cover
        raise RuntimeError(f'Timed out trying to access: {url}')


@pytest.fixture(scope='session')
def running_server():
    """A running freeimages server.

    The site config lives in a temporary directory so tests can inspect (and
    rewrite) what the server persisted.
    """
    tempdir = tempfile.mkdtemp()

    app_port = ephemeral_port_reserve.reserve()
    config_path = os.path.join(tempdir, 'freeimages.config.json')

    settings_path = os.path.join(tempdir, 'settings.py')
    with open(settings_path, 'w') as f:
        f.write(_templated_config(config_path))

    app_server = subprocess.Popen(
        (
            sys.executable,
            '-m', 'gunicorn.app.wsgiapp',
            '-b', f'127.0.0.1:{app_port}',
            'freeimages.run:app',
        ),
        env={
            'COVERAGE_PROCESS_START': os.environ.get('COVERAGE_PROCESS_START', ''),
            'FREEIMAGES_SETTINGS': settings_path,
        },
        cwd=str(PROJECT_ROOT),
    )

    _wait_for_http(f'http://localhost:{app_port}/api/config')

    yield {
        'home': f'http://localhost:{app_port}',
        'config_path': config_path,
    }

    app_server.send_signal(signal.SIGTERM)
    assert app_server.wait() == 0, app_server.returncode

    shutil.rmtree(tempdir)


@pytest.fixture
def server(running_server):
    """The running server, with the site config reset to the defaults."""
    write_config(running_server['config_path'])
    yield running_server
