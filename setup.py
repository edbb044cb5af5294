from setuptools import find_packages, setup

setup(
    name='plc-mqtt-bridge',
    version='1.0.0',
    description='TCP stream -> MQTT bridge daemon for PLC and sensor message sources',
    author='',
    author_email='',
    packages=find_packages(include=['plcbridge', 'plcbridge.*']),
    python_requires='>=3.12',
    install_requires=[
        'aiomqtt>=2.0',
        'msgspec',
        'prometheus-client',
        'tenacity',
        'transitions',
        'uvloop',
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-asyncio',
        ],
    },
    entry_points={
        'console_scripts': [
            'plcbridge=plcbridge.daemon:main',
        ],
    },
    classifiers=[
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.12',
        'Operating System :: POSIX :: Linux',
    ],
)
