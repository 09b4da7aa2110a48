from pydantic import BaseModel, ConfigDict, Field


class MigrationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    clear_before: bool = Field(default=False, alias="clearBefore")


class RelayRequest(BaseModel):
    limit: int | None = Field(default=None, ge=1)
