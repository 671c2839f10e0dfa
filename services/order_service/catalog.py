from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

CENTS = Decimal("0.01")


@dataclass(frozen=True)
class StickerSize:
    id: int
    label: str
    unit_price: Decimal


STICKER_SIZES = {
    size.id: size
    for size in (
        StickerSize(1, '2" x 2"', Decimal("2.99")),
        StickerSize(2, '3" x 3"', Decimal("3.99")),
        StickerSize(3, '4" x 4"', Decimal("4.99")),
    )
}


def get_size(size_id: int) -> StickerSize | None:
    return STICKER_SIZES.get(size_id)


def line_total(unit_price: Decimal, quantity: int) -> Decimal:
    return (unit_price * quantity).quantize(CENTS, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Decimal) -> int:
    """Dollars to cents, the unit the payment gateway charges in."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
