"""
Centralized mock objects for testing.

This package provides reusable factories for tokens, transports and
connections, reducing code duplication across test files.
"""
