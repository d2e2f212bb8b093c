"""UserSettings entity - Connection configuration and composer defaults."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

DEFAULT_MODEL = "gpt-3.5-turbo"
DEFAULT_TEMPERATURE = 0.7


class UserSettings(BaseModel):
    """Process-wide settings read by the API client and the composer."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    api_base_url: str
    api_token: str = ""
    default_model: str = DEFAULT_MODEL
    default_temperature: float = DEFAULT_TEMPERATURE
    timezone: str = "UTC"
    enable_live_logs: bool = True
