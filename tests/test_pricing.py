from datetime import date
from decimal import Decimal
from types import SimpleNamespace

from app.core.billing.pricing import (
    Discount,
    apply_discounts,
    price_student_items,
    round_half_up,
    scholarship_in_window,
    structure_applies,
)


TEN_PERCENT = Discount("percentage", 10)
FIFTY_OFF = Discount("fixed", 50)


def _structure(fee_type="Tuition", amount=1000, class_level="Form 1", boarding_status="all", term=1):
    return SimpleNamespace(
        fee_type=fee_type, amount=amount, class_level=class_level, boarding_status=boarding_status, term=term
    )


def test_round_half_up() -> None:
    assert round_half_up(Decimal("420.5")) == 421
    assert round_half_up(Decimal("420.49")) == 420
    assert round_half_up(Decimal("0.5")) == 1


def test_override_then_stacked_scholarships() -> None:
    items = price_student_items(
        [_structure(amount=1000)],
        "Form 1",
        "day",
        overrides={"Tuition": 800},
        discounts=[TEN_PERCENT, FIFTY_OFF],
    )
    assert len(items) == 1
    assert items[0].amount == 670
    assert items[0].base_amount == 1000
    assert items[0].overridden is True
    assert items[0].description == "Tuition - Form 1"


def test_stacking_order_changes_result() -> None:
    assert apply_discounts(800, "Tuition", [TEN_PERCENT, FIFTY_OFF]) == 670
    assert apply_discounts(800, "Tuition", [FIFTY_OFF, TEN_PERCENT]) == 675


def test_fixed_discount_never_goes_negative() -> None:
    assert apply_discounts(30, "Tuition", [FIFTY_OFF]) == 0


def test_percentage_rounds_to_nearest_unit() -> None:
    assert apply_discounts(845, "Tuition", [Discount("percentage", 50)]) == 423


def test_discount_limited_to_listed_fee_types() -> None:
    transport_only = Discount("percentage", 50, ("Transport",))
    assert apply_discounts(1000, "Tuition", [transport_only]) == 1000
    assert apply_discounts(1000, "Transport", [transport_only]) == 500


def test_structure_boarding_match() -> None:
    assert structure_applies("Form 1", "all", "Form 1", "day")
    assert structure_applies("Form 1", None, "Form 1", "boarding")
    assert structure_applies("Form 1", "boarding", "Form 1", "boarding")
    assert not structure_applies("Form 1", "boarding", "Form 1", "day")
    assert not structure_applies("Form 2", "all", "Form 1", "day")


def test_structures_for_other_classes_are_ignored() -> None:
    items = price_student_items(
        [_structure(class_level="Form 2"), _structure(fee_type="Boarding", amount=500, boarding_status="boarding")],
        "Form 1",
        "day",
        overrides={},
        discounts=[],
    )
    assert items == []


def test_term_specific_structure_beats_all_terms_row() -> None:
    items = price_student_items(
        [_structure(amount=900, term=None), _structure(amount=1000, term=1)],
        "Form 1",
        "day",
        overrides={},
        discounts=[],
    )
    assert [(i.fee_type, i.amount) for i in items] == [("Tuition", 1000)]


def test_boarding_specific_structure_beats_all_row() -> None:
    structures = [_structure(amount=1000, boarding_status="all"), _structure(amount=1500, boarding_status="boarding")]

    boarder = price_student_items(structures, "Form 1", "boarding", overrides={}, discounts=[])
    day_scholar = price_student_items(structures, "Form 1", "day", overrides={}, discounts=[])

    assert [i.amount for i in boarder] == [1500]
    assert [i.amount for i in day_scholar] == [1000]


def test_scholarship_window() -> None:
    today = date(2026, 3, 1)
    assert scholarship_in_window(None, None, today)
    assert scholarship_in_window(date(2026, 1, 1), date(2026, 12, 31), today)
    assert not scholarship_in_window(date(2026, 4, 1), None, today)
    assert not scholarship_in_window(None, date(2026, 2, 28), today)
