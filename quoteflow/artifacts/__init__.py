"""Quotation PDF artifact cache."""

from .cache import ArtifactCache, ArtifactResult, generate_access_password
from .single_flight import SingleFlight

__all__ = ["ArtifactCache", "ArtifactResult", "SingleFlight", "generate_access_password"]
