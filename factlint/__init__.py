"""
factlint - Content validation and fact annotation for MDX wiki pages.

Runs structural checks over a corpus of documents, detects numeric
disagreements between pages, and wraps hardcoded numbers in canonical
fact-reference tags without touching code, component attributes, or
spans that are already annotated.

Modules:
    content - Document parsing, writing, and protected-region detection
    facts - Canonical fact table, search patterns, scanning, and rewriting
    validation - Rule engine, fix application, reporting, and built-in rules
    edit_log - Best-effort client for the remote edit-log service
    config - Settings loaded from config/factlint.yaml and .env
    cli - Command-line interface entrypoints
"""

__version__ = "0.4.0"
