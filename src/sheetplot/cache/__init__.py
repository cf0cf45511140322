"""
Checkpoint cache module.

Persists intermediate datasheets keyed by canonical transform prefixes and
finds the longest stored prefix of a requested operator sequence.
"""

from .checkpoint import METADATA_DELIMITER, Checkpoint, CheckpointHeader, SourceIdentity, read_header
from .store import CacheMatch, CheckpointCache

__all__ = [
    "METADATA_DELIMITER",
    "Checkpoint",
    "CheckpointHeader",
    "SourceIdentity",
    "read_header",
    "CacheMatch",
    "CheckpointCache",
]
