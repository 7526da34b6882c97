"""
Utility modules for agbench.

Logging setup and file helpers (cleanup globs, artifact copies, archives).
"""
