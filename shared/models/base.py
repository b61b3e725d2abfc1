"""Base model for all wire-facing pydantic models.

Fields are declared in snake_case and serialised in camelCase, matching the
JSON contract of the web frontend.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
