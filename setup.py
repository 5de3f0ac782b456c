import codecs
import os
import re

from setuptools import find_packages
from setuptools import setup


def read_file(filename, encoding='utf8'):
    """Read unicode from given file."""
    with codecs.open(filename, encoding=encoding) as fd:
        return fd.read()


here = os.path.abspath(os.path.dirname(__file__))

# read version number (and other metadata) from package init
init_fn = os.path.join(here, 'src', 'flarecert', '__init__.py')
meta = dict(re.findall(r"""__([a-z]+)__ = '([^']+)""", read_file(init_fn)))

version = meta['version']

install_requires = [
    'acme>=3.0.0',
    # do not upgrade to cloudflare>=2.20 to avoid the breaking changes in
    # version 3.0, which renamed the import package and the zones API.
    'cloudflare>=2.19, <2.20',
    'ConfigArgParse>=1.5.3',
    'cryptography>=43.0.0',
    'josepy>=1.13.0',
    'pytz>=2019.3',
    'tabulate>=0.9.0',
]

test_extras = [
    'pytest',
]

setup(
    name='flarecert',
    version=version,
    description="Let's Encrypt certificates for Cloudflare hosted domains via DNS-01",
    url='https://github.com/bariiss/flarecert',
    author="FlareCert Project",
    license='Apache License 2.0',
    python_requires='>=3.9.2',
    classifiers=[
        'Development Status :: 4 - Beta',
        'Environment :: Console',
        'Intended Audience :: System Administrators',
        'License :: OSI Approved :: Apache Software License',
        'Operating System :: POSIX :: Linux',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Programming Language :: Python :: 3.13',
        'Topic :: Internet :: WWW/HTTP',
        'Topic :: Security',
        'Topic :: System :: Networking',
        'Topic :: System :: Systems Administration',
        'Topic :: Utilities',
    ],

    packages=find_packages(where='src'),
    package_dir={'': 'src'},
    include_package_data=True,
    install_requires=install_requires,
    extras_require={
        'test': test_extras,
    },
    entry_points={
        'console_scripts': [
            'flarecert = flarecert.main:main',
        ],
    },
)
