"""Holiday surcharge rule administration."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hourly_billing.actor import Actor
from hourly_billing.database import atomic
from hourly_billing.errors import NotFoundError, ValidationError
from hourly_billing.models import SurchargeRule

logger = logging.getLogger(__name__)

MIN_MULTIPLIER = Decimal("1.00")


class SurchargeService:
    """CRUD for surcharge rules. Validity windows never overlap."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_rules(self) -> list[SurchargeRule]:
        result = await self.session.execute(
            select(SurchargeRule).order_by(SurchargeRule.valid_from.desc())
        )
        return list(result.scalars().all())

    async def _load(self, rule_id: int) -> SurchargeRule:
        rule = await self.session.get(SurchargeRule, rule_id)
        if rule is None:
            raise NotFoundError("SurchargeRule", rule_id)
        return rule

    async def _validate(
        self,
        multiplier: Decimal,
        valid_from: date,
        valid_to: date | None,
        exclude_id: int | None = None,
    ) -> Decimal:
        multiplier = Decimal(str(multiplier))
        if multiplier < MIN_MULTIPLIER:
            raise ValidationError("Multiplier must be at least 1.00", multiplier=str(multiplier))
        if valid_to is not None and valid_to < valid_from:
            raise ValidationError("Rule must not end before it starts")

        for rule in await self.list_rules():
            if rule.surcharge_rule_id == exclude_id:
                continue
            if rule.overlaps(valid_from, valid_to):
                raise ValidationError(
                    f"Overlaps surcharge rule {rule.surcharge_rule_id} "
                    f"({rule.valid_from} to {rule.valid_to or 'open'})",
                    conflicting_rule_id=rule.surcharge_rule_id,
                )
        return multiplier

    async def create_rule(
        self,
        actor: Actor,
        multiplier: Decimal,
        valid_from: date,
        valid_to: date | None = None,
    ) -> SurchargeRule:
        actor.require_admin()
        multiplier = await self._validate(multiplier, valid_from, valid_to)

        async with atomic(self.session):
            rule = SurchargeRule(multiplier=multiplier, valid_from=valid_from, valid_to=valid_to)
            self.session.add(rule)
            await self.session.flush()

        logger.info("Surcharge rule %s created (x%s from %s)", rule.surcharge_rule_id, multiplier, valid_from)
        return rule

    async def update_rule(
        self,
        actor: Actor,
        rule_id: int,
        multiplier: Decimal,
        valid_from: date,
        valid_to: date | None = None,
    ) -> SurchargeRule:
        actor.require_admin()
        rule = await self._load(rule_id)
        multiplier = await self._validate(multiplier, valid_from, valid_to, exclude_id=rule_id)

        async with atomic(self.session):
            rule.multiplier = multiplier
            rule.valid_from = valid_from
            rule.valid_to = valid_to
            await self.session.flush()

        logger.info("Surcharge rule %s updated", rule_id)
        return rule

    async def delete_rule(self, actor: Actor, rule_id: int) -> None:
        actor.require_admin()
        rule = await self._load(rule_id)

        async with atomic(self.session):
            await self.session.delete(rule)
            await self.session.flush()

        logger.info("Surcharge rule %s deleted", rule_id)
