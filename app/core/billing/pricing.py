"""Fee resolution and scholarship discount stacking. Pure functions, no database access."""

from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from app.core.enums import BoardingStatus, DiscountType


def round_half_up(value: Decimal) -> int:
    """Round to the nearest whole unit, halves away from zero (420.5 -> 421)."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class Discount:
    discount_type: str
    discount_value: int
    fee_types: Tuple[str, ...] = ()

    def applies_to(self, fee_type: str) -> bool:
        return not self.fee_types or fee_type in self.fee_types


@dataclass
class PricedItem:
    fee_type: str
    class_level: str
    amount: int
    base_amount: int = 0
    overridden: bool = False
    discounts_applied: List[str] = field(default_factory=list)

    @property
    def description(self) -> str:
        return f"{self.fee_type} - {self.class_level}"


def apply_discount(amount: int, discount: Discount) -> int:
    if discount.discount_type == DiscountType.PERCENTAGE.value:
        factor = Decimal(1) - Decimal(discount.discount_value) / Decimal(100)
        return max(0, round_half_up(Decimal(amount) * factor))
    if discount.discount_type == DiscountType.FIXED.value:
        return max(0, amount - discount.discount_value)
    return amount


def apply_discounts(amount: int, fee_type: str, discounts: Sequence[Discount]) -> int:
    """
    Stack discounts in the given order. Order matters:
    800 with 10% then 50 fixed is 670, with 50 fixed then 10% is 675.
    """
    for discount in discounts:
        if discount.applies_to(fee_type):
            amount = apply_discount(amount, discount)
    return amount


def structure_applies(structure_class_level: str, structure_boarding: Optional[str], class_level: str, boarding_status: Optional[str]) -> bool:
    if structure_class_level != class_level:
        return False
    if not structure_boarding or structure_boarding == BoardingStatus.ALL.value:
        return True
    return structure_boarding == boarding_status


def structure_specificity(structure) -> Tuple[int, int]:
    """Rank for competing rows of one fee type: a named term beats all-terms, then a named boarding status beats "all"."""
    boarding = structure.boarding_status
    return (
        0 if structure.term is None else 1,
        0 if not boarding or boarding == BoardingStatus.ALL.value else 1,
    )


def scholarship_in_window(valid_from: Optional[date], valid_to: Optional[date], as_of: date) -> bool:
    if valid_from is not None and as_of < valid_from:
        return False
    if valid_to is not None and as_of > valid_to:
        return False
    return True


def price_student_items(
    structures: Iterable,
    class_level: str,
    boarding_status: Optional[str],
    overrides: Dict[str, int],
    discounts: Sequence[Discount],
) -> List[PricedItem]:
    """
    Resolve the charged amount of every applicable fee structure for one student.

    One item per fee type: when several structures match, the most specific wins.
    overrides maps fee_type to the student's custom amount; discounts must already be
    filtered to the student and term and sorted in assignment order.
    """
    chosen: Dict[str, object] = {}
    for s in structures:
        if not structure_applies(s.class_level, s.boarding_status, class_level, boarding_status):
            continue
        current = chosen.get(s.fee_type)
        if current is None or structure_specificity(s) > structure_specificity(current):
            chosen[s.fee_type] = s

    items: List[PricedItem] = []
    for s in chosen.values():
        base = overrides.get(s.fee_type, s.amount)
        item = PricedItem(
            fee_type=s.fee_type,
            class_level=s.class_level,
            amount=base,
            base_amount=s.amount,
            overridden=s.fee_type in overrides,
        )
        item.amount = apply_discounts(base, s.fee_type, discounts)
        items.append(item)
    return items
