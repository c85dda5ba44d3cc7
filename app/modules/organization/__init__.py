"""
Organization module: the tenant record and its billing entities (requisites).
"""

from .models import Organization, OrgRequisites

__all__ = ["Organization", "OrgRequisites"]
