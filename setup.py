"""Install the flowauth login service."""

from setuptools import setup, find_packages

setup(
    name='flowauth',
    version='0.1.0',
    packages=find_packages(exclude=['*test*']),
    python_requires='>=3.9',
    install_requires=[
        "fastapi",
        "starlette",
        "uvicorn",
        "python-multipart",
        "pydantic>=2",
        "pyjwt>=2",
        "requests",
        "sqlalchemy>=1.4",
        "python-json-logger",
    ],
    extras_require={
        'test': [
            "pytest",
            "httpx",
        ],
    },
    zip_safe=False
)
