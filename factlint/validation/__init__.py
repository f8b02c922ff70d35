"""
Validation engine and reporting.

Modules:
    engine - Rule registration, single-pass validation, fix application
    fixes - Fix descriptors attached to issues
    reporter - Text and JSON output
    rules - Built-in rules
"""
