"""Content-addressed artifact store APIs."""

from .keys import ArtifactInput, sanitize_name, store_key
from .store import ArtifactStore

__all__ = ["ArtifactInput", "ArtifactStore", "sanitize_name", "store_key"]
