"""Signer identity and signature freshness."""

from .signatures import FreshnessOracle, SignerIdentityProvider, StoreSignerDirectory

__all__ = ["FreshnessOracle", "SignerIdentityProvider", "StoreSignerDirectory"]
