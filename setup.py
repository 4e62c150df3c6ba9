from setuptools import setup

setup(
    name='id-obfuscator',
    version='1.0',
    description='Reversible prime-multiply-and-XOR obfuscation of integer IDs.',
    python_requires='>=3.9',
    py_modules=[
        'app',
        'config',
        'core_logic',
        'db_manager',
        'models',
        'mymath',
        'obfuscation',
        'primes',
        'router',
    ],
    install_requires=[
        'fastapi',
        'pydantic>=2',
        'httpx',
        'slowapi',
    ],
    extras_require={
        'test': [
            'pytest',
            'respx',
        ],
    },
)
