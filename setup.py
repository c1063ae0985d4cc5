import setuptools
from setuptools import find_packages

with open("readme.md", "r") as fh:
    long_description = fh.read()


vars2find = ["__author__", "__version__", "__url__"]
vars2readme = {}
with open("./ryos_backup/__init__.py") as f:
    for line in f.readlines():
        for v in vars2find:
            if line.startswith(v):
                line = line.replace(" ", "").replace('"', "").replace("'", "").strip()
                vars2readme[v] = line.split("=", 1)[1]

# Core dependencies (engine + storage backends)
core_deps = [
    "pydantic>=2.0",
    "tenacity",
    "redis[hiredis]>=5.0.0",
]

api_deps = [
    "fastapi>=0.100.0",
    "uvicorn",
    "pydantic-settings>=2.0",
    "python-multipart",
]

test_deps = [
    "pytest",
    "pytest-asyncio",
    "httpx",
]

setuptools.setup(
    name="ryos-backup",
    url=vars2readme["__url__"],
    version=vars2readme["__version__"],
    author=vars2readme["__author__"],
    description="State snapshot backup and restore engine for ryOS storage",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.9",
    install_requires=core_deps,
    extras_require={
        "api": api_deps,
        "test": test_deps + api_deps,
        "all": api_deps + test_deps,
    },
)
