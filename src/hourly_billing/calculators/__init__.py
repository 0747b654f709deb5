"""Pricing calculators."""

from hourly_billing.calculators.amount import AmountCalculator, line_amount, statement_total
from hourly_billing.calculators.rate_resolver import RateResolver, RateTable, find_covering_rate
from hourly_billing.calculators.surcharge import SurchargeEngine, SurchargeTable, select_rule
from hourly_billing.calculators.types import LineItem, StatementPricing

__all__ = [
    "AmountCalculator",
    "LineItem",
    "RateResolver",
    "RateTable",
    "StatementPricing",
    "SurchargeEngine",
    "SurchargeTable",
    "find_covering_rate",
    "line_amount",
    "select_rule",
    "statement_total",
]
