"""Transition events emitted by the engine for the audit-log collaborator."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, Field

from refurbflow.models.unit import Disposition, RefurbState, Unit, utcnow


class TransitionAction(StrEnum):
    CREATE = "CREATE"
    ADVANCE = "ADVANCE"
    BLOCK = "BLOCK"
    RESOLVE = "RESOLVE"
    ESCALATE = "ESCALATE"
    RETRY = "RETRY"
    FAIL = "FAIL"
    PASS = "PASS"
    CERTIFY = "CERTIFY"
    DISPOSE = "DISPOSE"


class TransitionEvent(BaseModel):
    """One state change of one unit."""

    qlid: str
    from_state: Optional[RefurbState] = None
    to_state: RefurbState
    action: TransitionAction
    actor: str = ""
    timestamp: datetime = Field(default_factory=utcnow)
    reason: Optional[str] = None
    notes: Optional[str] = None


class TransitionData(BaseModel):
    """Optional data accompanying a transition request."""

    reason: Optional[str] = None
    notes: Optional[str] = None
    disposition: Optional[Disposition] = None


class TransitionResult(BaseModel):
    """New unit snapshot plus the events produced getting there."""

    unit: Unit
    events: list[TransitionEvent] = Field(default_factory=list)
