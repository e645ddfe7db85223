from pydantic import BaseModel, Field


class TokenRequest(BaseModel):
    """A freshly minted Firebase ID token, used to confirm destructive actions"""
    id_token: str = Field(..., min_length=1)
