from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from adminws.auth import get_user_context
from adminws.logging import logger
from adminws.managers.websocket_connection_manager import ConnectionRegistry
from adminws.schemas.user import UserContext


def get_registry(request: Request) -> ConnectionRegistry:
    """Connection registry owned by the running application."""
    return request.app.state.registry


async def require_admin(
    user: Annotated[UserContext, Depends(get_user_context)],
) -> UserContext:
    """
    Allow only admin panel users (``user<id>`` identities).

    Raises:
        HTTPException: 403 Forbidden for member identities.
    """
    if not user.is_admin:
        logger.info(
            f"Permission denied for {user.websocket_key}: admin identity required"
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin identity required",
        )
    return user


RegistryDep = Annotated[ConnectionRegistry, Depends(get_registry)]
UserDep = Annotated[UserContext, Depends(get_user_context)]
AdminDep = Annotated[UserContext, Depends(require_admin)]
