"""Quatrelati ERP API"""

__version__ = "1.2.0"
