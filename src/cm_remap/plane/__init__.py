"""Management-plane contract and adapters."""

from cm_remap.plane.admin_service import KIND_MAPPINGS, AdminServiceClient, AdminServiceError
from cm_remap.plane.base import ContextHandle, ManagementPlane

__all__ = [
    "KIND_MAPPINGS",
    "AdminServiceClient",
    "AdminServiceError",
    "ContextHandle",
    "ManagementPlane",
]
