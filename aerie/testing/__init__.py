"""
Testing helpers.
"""

from .request_builder import RequestBuilder

__all__ = ["RequestBuilder"]
