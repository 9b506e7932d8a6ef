from pydantic import BaseModel

from app.schemas.clone import StatusConfig


class StatusOption(BaseModel):
    value: str
    label: str


class StatusCatalog(BaseModel):
    statuses: list[str]
    transitions: dict[str, list[str]]
    aliases: dict[str, str]
    review_actions: dict[str, str]
    dropdown_options: list[StatusOption]
    configs: dict[str, StatusConfig]
