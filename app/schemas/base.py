from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class SnapshotSchema(BaseModel):
    """Immutable value passed into the pricing engine."""

    model_config = ConfigDict(from_attributes=True, frozen=True)
