# backend/tutorslots/routes/availability.py
"""
Availability routes for tutors' recurring weekly windows.

Router Endpoints:
    GET / - List a tutor's rules (active and inactive)
    POST / - Add a weekly window
    PATCH /{rule_id} - Edit a window
    DELETE /{rule_id} - Remove a window
    POST /{rule_id}/active - Toggle a window on or off
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Query, Response, status

from ..api.dependencies import get_availability_service, get_current_actor, require_self
from ..core.exceptions import NotFoundException
from ..models.availability import AvailabilityRule
from ..models.user import User
from ..schemas.availability import (
    AvailabilityRuleActiveUpdate,
    AvailabilityRuleCreate,
    AvailabilityRuleRecord,
    AvailabilityRuleUpdate,
)
from ..services.availability_service import AvailabilityService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tutors/{tutor_id}/availability", tags=["availability"])


def _owned_rule(service: AvailabilityService, tutor_id: str, rule_id: str) -> AvailabilityRule:
    rule = service.get_rule(rule_id)
    if rule.tutor_id != tutor_id:
        raise NotFoundException(f"Availability rule {rule_id} not found", details={"rule_id": rule_id})
    return rule


@router.get("", response_model=List[AvailabilityRuleRecord])
def list_availability(
    tutor_id: str,
    include_inactive: bool = Query(True),
    service: AvailabilityService = Depends(get_availability_service),
) -> List[AvailabilityRuleRecord]:
    """List a tutor's rules ordered by day and start time."""
    rules = service.list_rules(tutor_id, include_inactive=include_inactive)
    return [AvailabilityRuleRecord.model_validate(rule) for rule in rules]


@router.get("/active", response_model=List[AvailabilityRuleRecord])
def list_active_availability(
    tutor_id: str,
    service: AvailabilityService = Depends(get_availability_service),
) -> List[AvailabilityRuleRecord]:
    return [AvailabilityRuleRecord.model_validate(rule) for rule in service.list_active(tutor_id)]


@router.post("", response_model=AvailabilityRuleRecord, status_code=status.HTTP_201_CREATED)
def add_availability(
    tutor_id: str,
    payload: AvailabilityRuleCreate,
    actor: User = Depends(get_current_actor),
    service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityRuleRecord:
    require_self(actor, tutor_id)
    rule = service.add_rule(tutor_id, payload.day_of_week, payload.start_time, payload.end_time)
    return AvailabilityRuleRecord.model_validate(rule)


@router.patch("/{rule_id}", response_model=AvailabilityRuleRecord)
def update_availability(
    tutor_id: str,
    rule_id: str,
    payload: AvailabilityRuleUpdate,
    actor: User = Depends(get_current_actor),
    service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityRuleRecord:
    require_self(actor, tutor_id)
    _owned_rule(service, tutor_id, rule_id)
    rule = service.update_rule(
        rule_id,
        day_of_week=payload.day_of_week,
        start_time=payload.start_time,
        end_time=payload.end_time,
    )
    return AvailabilityRuleRecord.model_validate(rule)


@router.post("/{rule_id}/active", response_model=AvailabilityRuleRecord)
def set_availability_active(
    tutor_id: str,
    rule_id: str,
    payload: AvailabilityRuleActiveUpdate,
    actor: User = Depends(get_current_actor),
    service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityRuleRecord:
    require_self(actor, tutor_id)
    _owned_rule(service, tutor_id, rule_id)
    return AvailabilityRuleRecord.model_validate(service.set_active(rule_id, payload.is_active))


@router.delete("/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_availability(
    tutor_id: str,
    rule_id: str,
    actor: User = Depends(get_current_actor),
    service: AvailabilityService = Depends(get_availability_service),
) -> Response:
    require_self(actor, tutor_id)
    _owned_rule(service, tutor_id, rule_id)
    service.remove(rule_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
