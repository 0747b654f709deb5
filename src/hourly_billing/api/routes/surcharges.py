"""Surcharge rule administration endpoints."""

from typing import Annotated

from fastapi import APIRouter, Path, Response, status

from hourly_billing.api.dependencies import CurrentActor, DbSession
from hourly_billing.api.schemas import ErrorResponse, SurchargeRuleCreate, SurchargeRuleResponse
from hourly_billing.services import SurchargeService

router = APIRouter(prefix="/surcharges", tags=["surcharges"])

ERRORS = {
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


@router.get("", response_model=list[SurchargeRuleResponse], responses=ERRORS)
async def list_rules(db: DbSession, actor: CurrentActor) -> list[SurchargeRuleResponse]:
    actor.require_admin()
    rules = await SurchargeService(db).list_rules()
    return [SurchargeRuleResponse.model_validate(r) for r in rules]


@router.post(
    "",
    response_model=SurchargeRuleResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERRORS,
)
async def create_rule(
    db: DbSession,
    actor: CurrentActor,
    payload: SurchargeRuleCreate,
) -> SurchargeRuleResponse:
    rule = await SurchargeService(db).create_rule(
        actor, payload.multiplier, payload.valid_from, payload.valid_to
    )
    return SurchargeRuleResponse.model_validate(rule)


@router.put("/{rule_id}", response_model=SurchargeRuleResponse, responses=ERRORS)
async def update_rule(
    db: DbSession,
    actor: CurrentActor,
    rule_id: Annotated[int, Path()],
    payload: SurchargeRuleCreate,
) -> SurchargeRuleResponse:
    rule = await SurchargeService(db).update_rule(
        actor, rule_id, payload.multiplier, payload.valid_from, payload.valid_to
    )
    return SurchargeRuleResponse.model_validate(rule)


@router.delete("/{rule_id}", status_code=status.HTTP_204_NO_CONTENT, responses=ERRORS)
async def delete_rule(
    db: DbSession,
    actor: CurrentActor,
    rule_id: Annotated[int, Path()],
) -> Response:
    await SurchargeService(db).delete_rule(actor, rule_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
