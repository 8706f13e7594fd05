"""Common schemas used across the application.

The HTTP API speaks the cooperative's field names (``lahan_id``,
``jenis_aktivitas``, ...) while the ORM uses English attribute names.
``WireModel`` bridges the two with per-field aliases; ``CamelModel`` is for
the traceability documents, whose keys are camelCase.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Validates and serializes by alias, populates from ORM attributes by name."""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class CamelModel(BaseModel):
    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


class MessageResponse(BaseModel):
    message: str
