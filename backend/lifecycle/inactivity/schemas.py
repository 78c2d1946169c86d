"""Inactivity admin API schemas."""

from pydantic import BaseModel


class CycleResponse(BaseModel):
    success: bool
    message: str
    tiers: dict[str, int] = {}


class InactivityStatsResponse(BaseModel):
    inactive_15_to_24_days: int
    inactive_25_to_29_days: int
    deactivated_due_to_inactivity: int
    pending_deletion: int
