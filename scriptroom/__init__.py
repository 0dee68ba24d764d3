"""
Scriptroom - a team of AI agents that writes and voices video scripts.
"""
__version__ = "1.0.0"
