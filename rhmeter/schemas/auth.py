from __future__ import annotations

from pydantic import BaseModel, Field


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(ge=1, description="Token lifetime in seconds")
    scope: str = ""


class User(BaseModel):
    username: str = Field(min_length=1, max_length=64)
    scopes: list[str] = Field(default_factory=list)

    def can(self, scope: str) -> bool:
        return scope in self.scopes
