"""Admin operations."""

from fundledger.admin.service import AdminService

__all__ = ["AdminService"]
