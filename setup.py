from setuptools import setup, find_packages
setup(
    name='cerbereauth',
    version='0.1',
    packages=find_packages(exclude=['tests']),
    python_requires='>=3.6',
    install_requires=[
        'requests>=2.20.0',
    ],
    extras_require={
        'test': ['pytest>=6.0'],
    },

    author='Allan Saddi',
    author_email='allan@saddi.com',
    description='WSGI middleware for Cerbere (CAS 2.0 / SAML 1.1) authentication'
)
