"""
DbC Explorer — contract-coverage heat graph for a codebase.
"""
__version__ = "0.1.0"
