"""
HTTP transport for Script Room.
"""
