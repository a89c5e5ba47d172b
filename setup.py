"""es_aggs: elasticsearch aggregation module."""

from setuptools import find_namespace_packages, setup

with open("README.md") as f:
    desc = f.read()

install_requires = [
    "attrs>=23.2.0",
    "pydantic>=2.4.1,<3.0.0",
    "pydantic-settings>=2.0.0",
    "orjson>=3.9.0",
    "overrides~=7.4.0",
    "certifi",
    "click>=8.0.0",
    "elasticsearch~=8.18.0",
    "elasticsearch-dsl~=8.18.0",
]

extra_reqs = {
    "dev": [
        "pytest~=7.0.0",
        "pytest-cov~=4.0.0",
    ],
}

setup(
    name="es_aggs",
    version="0.1.0",
    description="Aggregation facade over Elasticsearch: primitive arguments in, flat results out.",
    long_description=desc,
    long_description_content_type="text/markdown",
    python_requires=">=3.9",
    classifiers=[
        "Intended Audience :: Developers",
        "Intended Audience :: Information Technology",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "License :: OSI Approved :: MIT License",
    ],
    license="MIT",
    packages=find_namespace_packages(include=["es_aggs", "es_aggs.*"]),
    zip_safe=False,
    install_requires=install_requires,
    tests_require=extra_reqs["dev"],
    extras_require=extra_reqs,
    entry_points={"console_scripts": ["es-aggs=es_aggs.cli:cli"]},
)
