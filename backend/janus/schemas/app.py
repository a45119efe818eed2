# janus/schemas/app.py
from pydantic import BaseModel, Field


class AppIn(BaseModel):
    name: str = Field(default="", max_length=100)
