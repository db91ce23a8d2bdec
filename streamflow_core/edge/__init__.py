"""
Edge Module
===========
Request-scoped function deployment of the proxy.
"""

from .handler import create_edge_app, EDGE_PATH

__all__ = ["create_edge_app", "EDGE_PATH"]
