"""
Tests for the Pricing Resolver

Pricing Formula:
- flat:     override.agent_price, else program.base_price, passenger counts ignored
- per_head: adults * adult_rate + children * child_rate, infants free,
            each rate taken from the override when set
- bookings without an agent never use an override
"""

import pytest
from decimal import Decimal
from types import SimpleNamespace

from tourops.exceptions import MissingPricingData, ValidationError
from tourops.models import AgentPricing
from tourops.services.pricing_resolver import (
    PricingResolver,
    from_minor_units,
    resolve_price,
    to_minor_units,
)


def make_program(pricing_type="flat", base_price=None, adult=None, child=None, program_id="prog-1"):
    return SimpleNamespace(
        id=program_id,
        pricing_type=pricing_type,
        base_price=base_price,
        adult_selling_price=adult,
        child_selling_price=child,
    )


def make_booking(agent_id="agent-1", adults=2, children=0, infants=0):
    return SimpleNamespace(agent_id=agent_id, adults=adults, children=children, infants=infants)


def make_override(agent_id="agent-1", program_id="prog-1", agent_price=None, adult=None, child=None):
    return SimpleNamespace(
        agent_id=agent_id,
        program_id=program_id,
        agent_price=agent_price,
        adult_agent_price=adult,
        child_agent_price=child,
    )


# Test the pricing rules without database
class TestFlatPricing:

    def test_program_base_price(self):
        resolved = resolve_price(make_booking(), make_program(base_price=Decimal("1000")))
        assert resolved.amount == Decimal("1000.00")
        assert resolved.breakdown.source == "program_default"

    def test_override_ignores_passenger_counts(self):
        program = make_program(base_price=Decimal("1000"))
        override = make_override(agent_price=Decimal("800"))

        small = resolve_price(make_booking(adults=1), program, override)
        large = resolve_price(make_booking(adults=5, children=3, infants=1), program, override)

        assert small.amount == Decimal("800.00")
        assert large.amount == Decimal("800.00")
        assert large.breakdown.source == "agent_override"

    def test_override_without_flat_price_falls_back(self):
        program = make_program(base_price=Decimal("1000"))
        override = make_override(adult=Decimal("300"))
        assert resolve_price(make_booking(), program, override).amount == Decimal("1000.00")

    def test_no_base_price_and_no_override_raises(self):
        with pytest.raises(MissingPricingData) as exc_info:
            resolve_price(make_booking(), make_program(base_price=None))
        assert exc_info.value.program_id == "prog-1"

    def test_legacy_single_type_is_flat(self):
        resolved = resolve_price(make_booking(), make_program(pricing_type="single", base_price=Decimal("900")))
        assert resolved.amount == Decimal("900.00")
        assert resolved.breakdown.pricing_type == "flat"


class TestPerHeadPricing:

    def test_adults_and_children(self):
        program = make_program("per_head", adult=Decimal("500"), child=Decimal("250"))
        resolved = resolve_price(make_booking(adults=2, children=1), program)
        assert resolved.amount == Decimal("1250.00")

    def test_infants_are_free(self):
        program = make_program("per_head", adult=Decimal("500"), child=Decimal("250"))
        resolved = resolve_price(make_booking(adults=2, children=1, infants=3), program)
        assert resolved.amount == Decimal("1250.00")
        assert resolved.breakdown.infant_rate == Decimal("0")

    def test_override_replaces_only_the_rates_it_sets(self):
        program = make_program("per_head", adult=Decimal("500"), child=Decimal("250"))
        override = make_override(adult=Decimal("400"))

        resolved = resolve_price(make_booking(adults=2, children=1), program, override)

        assert resolved.amount == Decimal("1050.00")
        assert resolved.breakdown.adult_rate == Decimal("400")
        assert resolved.breakdown.child_rate == Decimal("250")

    def test_no_rates_at_all_raises(self):
        program = make_program("per_head")
        override = make_override(adult=Decimal("400"))
        with pytest.raises(MissingPricingData):
            resolve_price(make_booking(), program, override)

    def test_missing_adult_rate_with_adults_raises(self):
        program = make_program("per_head", child=Decimal("250"))
        with pytest.raises(MissingPricingData):
            resolve_price(make_booking(adults=1, children=1), program)

    def test_missing_adult_rate_without_adults_is_fine(self):
        program = make_program("per_head", child=Decimal("250"))
        resolved = resolve_price(make_booking(adults=0, children=2), program)
        assert resolved.amount == Decimal("500.00")

    def test_rounds_half_up_to_two_places(self):
        program = make_program("per_head", adult=Decimal("333.335"), child=Decimal("0"))
        resolved = resolve_price(make_booking(adults=1), program)
        assert resolved.amount == Decimal("333.34")

    def test_legacy_adult_child_type(self):
        program = make_program("adult_child", adult=Decimal("100"), child=Decimal("50"))
        assert resolve_price(make_booking(adults=1, children=1), program).amount == Decimal("150.00")


class TestOverrideRules:

    def test_booking_without_agent_ignores_override(self):
        program = make_program(base_price=Decimal("1000"))
        override = make_override(agent_price=Decimal("800"))
        resolved = resolve_price(make_booking(agent_id=None), program, override)
        assert resolved.amount == Decimal("1000.00")

    def test_override_of_another_agent_is_rejected(self):
        program = make_program(base_price=Decimal("1000"))
        override = make_override(agent_id="agent-2", agent_price=Decimal("800"))
        with pytest.raises(ValidationError):
            resolve_price(make_booking(), program, override)

    def test_override_of_another_program_is_rejected(self):
        program = make_program(base_price=Decimal("1000"))
        override = make_override(program_id="prog-2", agent_price=Decimal("800"))
        with pytest.raises(ValidationError):
            resolve_price(make_booking(), program, override)

    def test_negative_counts_are_rejected(self):
        with pytest.raises(ValidationError):
            resolve_price(make_booking(adults=-1), make_program(base_price=Decimal("1000")))

    def test_unknown_pricing_type_is_rejected(self):
        with pytest.raises(ValidationError):
            resolve_price(make_booking(), make_program(pricing_type="per_minute", base_price=Decimal("1")))


class TestMinorUnits:

    def test_to_minor_units(self):
        assert to_minor_units(Decimal("1250.50")) == 125050

    def test_from_minor_units(self):
        assert from_minor_units(125050) == Decimal("1250.50")

    def test_resolved_amount_minor(self):
        program = make_program("per_head", adult=Decimal("500"), child=Decimal("250"))
        assert resolve_price(make_booking(adults=2, children=1), program).amount_minor == 125000


class TestPricingResolverWithDatabase:

    def test_uses_stored_override(self, seed, db):
        program = seed.program(base_price=Decimal("1000"))
        agent = seed.agent()
        seed.pricing(agent, program, agent_price=Decimal("800"))
        booking = seed.booking(program, agent=agent, adults=4)

        resolved = PricingResolver(db).resolve_for_booking(booking)

        assert resolved.amount == Decimal("800.00")

    def test_removing_override_reverts_to_program_price(self, seed, db):
        program = seed.program(base_price=Decimal("1000"))
        agent = seed.agent()
        override = seed.pricing(agent, program, agent_price=Decimal("800"))
        booking = seed.booking(program, agent=agent)

        db.delete(db.get(AgentPricing, override.id))
        db.commit()

        assert PricingResolver(db).resolve_for_booking(booking).amount == Decimal("1000.00")

    def test_override_of_other_agent_does_not_apply(self, seed, db):
        program = seed.program(base_price=Decimal("1000"))
        agent = seed.agent("Andaman Travel")
        other = seed.agent("Krabi Tours")
        seed.pricing(other, program, agent_price=Decimal("600"))
        booking = seed.booking(program, agent=agent)

        assert PricingResolver(db).resolve_for_booking(booking).amount == Decimal("1000.00")

    def test_price_bookings_reports_failures_per_booking(self, seed, db):
        priced = seed.per_head_program()
        unpriced = seed.program("Sunset Dinner", base_price=None)
        good = seed.booking(priced, "Good", adults=2, children=1)
        bad = seed.booking(unpriced, "Bad")

        results = PricingResolver(db).price_bookings([good, bad])

        assert results[good.id].amount == Decimal("1250.00")
        assert isinstance(results[bad.id], MissingPricingData)
