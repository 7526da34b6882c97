"""
agbench: benchmark local LLM backends by driving command-line coding agents.
"""

__version__ = "0.1.0"
