"""
External providers used by the services layer.
"""
