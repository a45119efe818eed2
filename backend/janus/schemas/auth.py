# janus/schemas/auth.py
from pydantic import BaseModel, ConfigDict, Field


class LoginIn(BaseModel):
    """
    Login request body. JSON only: urlencoded form posts are rejected as
    ``invalid_request`` rather than parsed.
    """

    # Missing fields are left to the pipeline so clients get a stable error kind
    assertion: str = Field(default="", alias="assert", max_length=16384)
    appkey: str = Field(default="", max_length=256)
    key: str | None = Field(default=None, max_length=256)

    model_config = ConfigDict(populate_by_name=True)


class LoginOut(BaseModel):
    ok: bool = True
    db: str
    name: str
    # Where the tenant database is reachable through the /db/ proxy
    url: str


class OkOut(BaseModel):
    ok: bool = True
