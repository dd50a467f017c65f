"""Core bencode codec.

This module contains the type-directed codec components:
- Value model primitives and shape descriptors
- Field metadata and strategy caches
- Encoder and decoder engines
- Marshal/unmarshal extension hooks
"""

from __future__ import annotations
