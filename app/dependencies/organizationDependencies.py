from typing import Annotated
from fastapi import Depends, Request, HTTPException, status
from uuid import UUID


def get_organization_id(request: Request) -> UUID:
    """Extract organization_id from request state set by OrganizationMiddleware"""
    if not hasattr(request.state, 'organization_id'):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Organization context not found. Ensure X-Organization-ID header is provided."
        )
    return request.state.organization_id


OrganizationId = Annotated[UUID, Depends(get_organization_id)]
