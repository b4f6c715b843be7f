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
init_fn = os.path.join(here, 'src', 'localcert', '__init__.py')
meta = dict(re.findall(r"""__([a-z]+)__ = '([^']+)""", read_file(init_fn)))

readme = read_file(os.path.join(here, 'README.rst'))
version = meta['version']

install_requires = [
    'acme>=2.0.0',
    'ConfigArgParse>=1.5.3',
    'cryptography>=43.0.0',
    'josepy>=2.0.0',
    'requests>=2.20.0',
]

test_extras = [
    'pytest',
    'pytest-cov',
]

setup(
    name='localcert',
    version=version,
    description="Certificate provisioning client for localcert domains",
    long_description=readme,
    url='https://github.com/wildone/localcert',
    license='Apache License 2.0',
    python_requires='>=3.9',
    classifiers=[
        'Development Status :: 4 - Beta',
        'Environment :: Console',
        'Intended Audience :: Developers',
        'Intended Audience :: System Administrators',
        'License :: OSI Approved :: Apache Software License',
        'Operating System :: POSIX :: Linux',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
        'Topic :: Internet :: WWW/HTTP',
        'Topic :: Security',
        'Topic :: Utilities',
    ],

    package_dir={'': 'src'},
    packages=find_packages(where='src'),
    include_package_data=True,

    install_requires=install_requires,
    extras_require={
        'test': test_extras,
    },

    entry_points={
        'console_scripts': [
            'localcert = localcert.main:main',
        ],
    },
)
