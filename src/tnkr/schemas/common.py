"""Shared schema base.

Learn: Python code uses snake_case; the JSON the mobile and web clients
speak is camelCase (firstName, receiverId, isVerifiedTechnician).
CamelModel bridges the two: alias_generator renders camelCase on the
wire, populate_by_name still accepts snake_case input, and
from_attributes lets us validate ORM objects directly.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class MessageResponse(CamelModel):
    """Plain acknowledgement body: {"message": "..."}."""
    message: str
