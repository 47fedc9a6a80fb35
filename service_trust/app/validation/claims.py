"""
Claims models for access and identity tokens.
"""

from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

ACCESS_TOKEN_USE = "access"
IDENTITY_TOKEN_USE = "id"


class RegisteredClaims(BaseModel):
    """Registered temporal and identity claims shared by both token classes."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    issuer: str = Field(alias="iss")
    subject: Optional[str] = Field(default=None, alias="sub")
    expires_at: datetime = Field(alias="exp")
    not_before: Optional[datetime] = Field(default=None, alias="nbf")
    issued_at: Optional[datetime] = Field(default=None, alias="iat")
    client_id: Optional[str] = None


class AccessClaims(RegisteredClaims):
    """Claims carried by an access token."""

    token_use: Literal["access"]
    scope: str = ""
    groups: List[str] = Field(default_factory=list, alias="cognito:groups")
    username: Optional[str] = Field(default=None, alias="cognito:username")

    @property
    def scopes(self) -> List[str]:
        return self.scope.split()


class IdentityClaims(RegisteredClaims):
    """Claims carried by an identity token."""

    token_use: Literal["id"]
    audience: Union[str, List[str], None] = Field(default=None, alias="aud")
    email: Optional[str] = None
    email_verified: bool = False
    phone_number: Optional[str] = None
    phone_number_verified: bool = False
    name: Optional[str] = None
    family_name: Optional[str] = None
    gender: Optional[str] = None


Claims = Annotated[Union[AccessClaims, IdentityClaims], Field(discriminator="token_use")]

claims_adapter: TypeAdapter = TypeAdapter(Claims)
