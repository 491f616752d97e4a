"""Registry package.

This package provides access to module registries:
- base.py: the Registry interface
- index.py: the index layout served over HTTP or from disk
- http.py: file/HTTP reads with error classification
- factory.py: one shared registry object per URL
"""

from .base import Registry
from .factory import RegistryFactory
from .index import IndexRegistry

__all__ = ["Registry", "RegistryFactory", "IndexRegistry"]
