"""
mkdocs-confdoc: Configuration Reference Documentation for MkDocs.

Renders configuration struct metadata as browsable reference pages in
MkDocs, validating every cross-reference between fields and reporting
the ones that do not resolve.
"""

__version__ = "0.3.0"
