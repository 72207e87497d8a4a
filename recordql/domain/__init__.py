"""
Domain Layer

Query building and execution.
"""
