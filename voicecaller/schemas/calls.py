"""Call schemas."""

from pydantic import BaseModel, Field


class PlaceTestCallRequest(BaseModel):
    """Single test call request."""

    campaign_id: int
    phone_number: str = Field(..., pattern=r"^\+[1-9]\d{1,14}$")
    first_name: str = ""
