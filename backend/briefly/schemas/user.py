"""User Schemas - identity forwarded by the gateway and plan responses."""

from datetime import datetime

from pydantic import BaseModel


class Identity(BaseModel):
    """Verified identity as injected by the upstream auth gateway."""
    id: str
    email: str | None = None
    given_name: str | None = None
    family_name: str | None = None

    def is_complete(self) -> bool:
        return bool(self.id and self.email and self.given_name and self.family_name)


class PlanResponse(BaseModel):
    name: str
    slug: str
    quota: int
    pages_per_pdf: int
    max_file_size_mb: int
    price_amount: int
    is_subscribed: bool
    is_canceled: bool
    current_period_end: datetime | None = None
