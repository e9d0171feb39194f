from fastapi import Depends, HTTPException

from facturation.api.auth import get_current_user
from facturation.core import models


def require_admin(user: models.User = Depends(get_current_user)) -> models.User:
    if user.role != "admin":
        raise HTTPException(status_code=403, detail="Autorisations insuffisantes")
    return user
