from setuptools import setup, find_packages

setup(
    name="mkdocs-confdoc",
    version="0.3.0",
    description="MkDocs plugin for configuration reference docs with checked cross-references",
    keywords="mkdocs configuration reference toml documentation python",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.11",
    install_requires=[
        "mkdocs>=1.4",
    ],
    extras_require={
        "test": ["pytest"],
    },
    classifiers = [
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Documentation",
        "Topic :: Software Development :: Documentation",
        "Framework :: MkDocs",
    ],
    entry_points={
        "mkdocs.plugins": [
            "confdoc = mkdocs_confdoc.plugin:ConfdocPlugin",
        ],
        "console_scripts": [
            "mkdocs-confdoc = mkdocs_confdoc.cli:main",
        ],
    },
)
