from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class MessageResponse(BaseModel):
    message: str


class CamelModel(BaseModel):
    """Schema exchanged with the web client in camelCase (accepts snake_case too)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)
