"""
Infrastructure Layer

Record stores and execution diagnostics.
"""
