from pydantic import BaseModel, ConfigDict, Field, computed_field

from adminws.settings import app_settings


class UserContext(BaseModel):  # type: ignore[misc]
    """Authenticated caller, built from verified token claims."""

    user_id: int = 0
    member_id: int | None = None
    username: str = Field(default="", alias="user_name")
    role_id: int | None = None
    login_session: str | None = None
    expired_in: int | None = Field(default=None, alias="exp")

    model_config = ConfigDict(populate_by_name=True)

    @computed_field  # type: ignore[misc]
    @property
    def websocket_key(self) -> str:
        """Identity key used by the connection registry."""
        if self.member_id is not None:
            return f"{app_settings.MEMBER_IDENTITY_PREFIX}{self.member_id}"
        return f"{app_settings.ADMIN_IDENTITY_PREFIX}{self.user_id}"

    @property
    def is_admin(self) -> bool:
        return self.member_id is None
