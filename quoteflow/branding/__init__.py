"""Organization branding lookups."""

from .company_profile import CompanyProfile, resolve_company_profile

__all__ = ["CompanyProfile", "resolve_company_profile"]
