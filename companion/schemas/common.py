from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake_case attributes exposed and stored under camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, use_enum_values=True, extra="ignore")
