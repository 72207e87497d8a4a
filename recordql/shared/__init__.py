"""
Shared Components

Exceptions and plan types used across the package.
"""
