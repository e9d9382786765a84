from setuptools import find_packages, setup

setup(
    name='furcoms',
    version='1.0.0',
    description='FurComs serial bus messaging with an MQTT bridge daemon',
    author='',
    author_email='',
    packages=find_packages(include=['furcoms', 'furcoms.*']),
    python_requires='>=3.11',
    install_requires=[
        'pyserial',
        'paho-mqtt>=2.0',
        'msgspec',
        'construct',
        'marshmallow>=3.13',
        'tenacity',
        'transitions',
        'prometheus-client',
    ],
    extras_require={
        'test': [
            'pytest',
        ],
    },
    entry_points={
        'console_scripts': [
            'furcoms-bridge=furcoms.daemon:main',
            'furcoms-frame-debug=furcoms.tools.frame_debug:main',
        ],
    },
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: POSIX :: Linux',
    ],
)
