from setuptools import find_packages
from setuptools import setup

from freeimages import version


with open('requirements-minimal.txt') as f:
    minimal_reqs = f.read().splitlines()

with open('requirements-dev.txt') as f:
    dev_reqs = f.read().splitlines()


setup(
    name='freeimages',
    version=version,
    packages=find_packages(exclude=('test*',)),
    include_package_data=True,
    install_requires=minimal_reqs,
    extras_require={
        'testing': dev_reqs,
    },
    license='Apache License 2.0',
    classifiers=(
        'License :: OSI Approved :: Apache Software License',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
    ),
    python_requires='>=3.10',
    entry_points={
        'console_scripts': [
            'fimg = freeimages.cli:upload_main',
            'fimg-config = freeimages.cli:config_main',
        ],
    },
)
