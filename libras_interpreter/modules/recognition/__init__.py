"""Feature encoding and sign classification."""
from .feature_encoder import encode

__all__ = ["encode"]
