# app/modules/users/schemas.py

from uuid import UUID

from pydantic import BaseModel, ConfigDict


class UserRef(BaseModel):
    """
    Minimal view of a user as the group core needs it.
    """
    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    display_name: str
