from .cache import CURRENT_LABEL, ArtifactCache, ArtifactRecord, sanitize_label

__all__ = ["CURRENT_LABEL", "ArtifactCache", "ArtifactRecord", "sanitize_label"]
