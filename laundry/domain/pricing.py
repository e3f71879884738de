"""
Pricing Engine — per-kg service cost, add-on cost and order totals.

All prices live in one currency-aware catalog keyed by (item id, currency).
Money is Decimal throughout; weights may be given as float or Decimal.
A breakdown prices weights at 10 g resolution and rounds every money line
to the currency's minor unit, the same precision orders are stored with.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Sequence

from laundry.core.errors import ValidationError

ZERO = Decimal("0")
WEIGHT_STEP = Decimal("0.01")

Number = Decimal | float | int


def _d(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def normalize_weight(value: Number | None) -> Decimal | None:
    if value is None:
        return None
    return _d(value).quantize(WEIGHT_STEP, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class ServiceRate:
    id: str
    name: str
    price_per_kg: Decimal
    delivery_time: str = ""
    description: str = ""


@dataclass(frozen=True)
class AddOnRate:
    """Either priced per unit weight (price_per_kg) or flat (base_price).

    An add-on with neither set (the custom "Other" request) costs nothing here;
    staff price it manually after pickup.
    """
    id: str
    name: str
    unit: str = "piece"
    price_per_kg: Decimal | None = None
    base_price: Decimal | None = None
    max_price: Decimal | None = None
    description: str = ""

    @property
    def pricing(self) -> str:
        if self.price_per_kg is not None:
            return "per_kg"
        if self.base_price is not None:
            return "flat"
        return "manual"

    @property
    def unit_price(self) -> Decimal:
        if self.price_per_kg is not None:
            return self.price_per_kg
        return self.base_price if self.base_price is not None else ZERO


@dataclass(frozen=True)
class AddOnSelection:
    add_on: AddOnRate
    quantity: Number = 1


@dataclass(frozen=True)
class CurrencyTable:
    code: str
    symbol: str
    decimals: int
    services: dict[str, ServiceRate]
    add_ons: dict[str, AddOnRate]
    delivery_fee_per_km: Decimal
    minimum_order_amount: Decimal

    def money(self, amount: Number) -> Decimal:
        return _d(amount).quantize(Decimal(1).scaleb(-self.decimals), rounding=ROUND_HALF_UP)

    def format(self, amount: Number) -> str:
        return f"{self.symbol} {self.money(amount):,}"


def compute_service_cost(service: ServiceRate, weight_kg: Number | None) -> Decimal:
    if weight_kg is None:
        return ZERO
    return service.price_per_kg * _d(weight_kg)


def compute_add_on_cost(add_on: AddOnRate, quantity: Number) -> Decimal:
    if add_on.price_per_kg is not None:
        return add_on.price_per_kg * _d(quantity)
    if add_on.base_price is not None:
        return add_on.base_price * _d(quantity)
    return ZERO


def compute_order_total(
    service: ServiceRate,
    weight_kg: Number | None,
    add_ons: Iterable[AddOnSelection] = (),
) -> Decimal:
    total = compute_service_cost(service, weight_kg)
    for selection in add_ons:
        total += compute_add_on_cost(selection.add_on, selection.quantity)
    return total


@dataclass
class AddOnLine:
    id: str
    name: str
    quantity: Decimal
    unit_price: Decimal
    pricing: str
    total: Decimal


@dataclass
class PriceBreakdown:
    currency: str
    service_id: str
    service_name: str
    rate_per_kg: Decimal
    weight_kg: Decimal | None
    service_cost: Decimal
    add_on_lines: list[AddOnLine] = field(default_factory=list)
    delivery_fee: Decimal = ZERO

    @property
    def add_ons_total(self) -> Decimal:
        return sum((line.total for line in self.add_on_lines), ZERO)

    @property
    def subtotal(self) -> Decimal:
        return self.service_cost + self.add_ons_total

    @property
    def total(self) -> Decimal:
        return self.subtotal + self.delivery_fee


class PricingCatalog:
    """Single lookup for every price the service quotes."""

    def __init__(self, tables: Sequence[CurrencyTable], default_currency: str = "UGX"):
        self._tables = {t.code: t for t in tables}
        if default_currency not in self._tables:
            raise ValueError(f"default currency {default_currency!r} has no pricing table")
        self.default_currency = default_currency

    @property
    def currencies(self) -> list[str]:
        return list(self._tables)

    def table(self, currency: str | None = None) -> CurrencyTable:
        code = (currency or self.default_currency).upper()
        try:
            return self._tables[code]
        except KeyError:
            raise ValidationError(f"Unsupported currency '{code}'.", field="currency") from None

    def service(self, service_id: str, currency: str | None = None) -> ServiceRate:
        try:
            return self.table(currency).services[service_id]
        except KeyError:
            raise ValidationError(f"Unknown service '{service_id}'.", field="service_id") from None

    def add_on(self, add_on_id: str, currency: str | None = None) -> AddOnRate:
        try:
            return self.table(currency).add_ons[add_on_id]
        except KeyError:
            raise ValidationError(f"Unknown add-on '{add_on_id}'.", field="add_ons") from None

    def delivery_rate(self, currency: str | None = None) -> Decimal:
        return self.table(currency).delivery_fee_per_km

    def selections(
        self, items: Iterable[tuple[str, Number]], currency: str | None = None
    ) -> list[AddOnSelection]:
        return [AddOnSelection(self.add_on(add_on_id, currency), qty) for add_on_id, qty in items]

    def breakdown(
        self,
        service_id: str,
        weight_kg: Number | None,
        add_ons: Iterable[tuple[str, Number]] = (),
        currency: str | None = None,
        delivery_fee: Number = ZERO,
    ) -> PriceBreakdown:
        table = self.table(currency)
        service = self.service(service_id, currency)
        weight = normalize_weight(weight_kg)
        lines = []
        for selection in self.selections(add_ons, currency):
            quantity = normalize_weight(selection.quantity)
            lines.append(AddOnLine(
                id=selection.add_on.id,
                name=selection.add_on.name,
                quantity=quantity,
                unit_price=selection.add_on.unit_price,
                pricing=selection.add_on.pricing,
                total=table.money(compute_add_on_cost(selection.add_on, quantity)),
            ))
        return PriceBreakdown(
            currency=table.code,
            service_id=service.id,
            service_name=service.name,
            rate_per_kg=service.price_per_kg,
            weight_kg=weight,
            service_cost=table.money(compute_service_cost(service, weight)),
            add_on_lines=lines,
            delivery_fee=table.money(delivery_fee),
        )


def _ugx() -> CurrencyTable:
    return CurrencyTable(
        code="UGX",
        symbol="UGX",
        decimals=0,
        services={
            "ordinary": ServiceRate("ordinary", "Ordinary", Decimal("4000"), "2 days",
                                    "Washed, not ironed, unscented"),
            "standard": ServiceRate("standard", "Standard", Decimal("5000"), "Next day",
                                    "Scented, ironed"),
            "express": ServiceRate("express", "Express", Decimal("8000"), "Same day",
                                   "Scented, ironed, skips the queue"),
        },
        add_ons={
            "duvet": AddOnRate("duvet", "Duvet Cleaning", "piece", base_price=Decimal("10000"),
                               max_price=Decimal("30000"), description="Professional duvet cleaning"),
            "suit": AddOnRate("suit", "Suit Cleaning", "piece", base_price=Decimal("10000"),
                              max_price=Decimal("20000"), description="Dry cleaning for suits"),
            "sneaker": AddOnRate("sneaker", "Sneaker Cleaning", "kg", price_per_kg=Decimal("5000"),
                                 description="Deep cleaning for sneakers"),
            "other": AddOnRate("other", "Other Service", "request",
                               description="Custom request, priced by staff after pickup"),
        },
        delivery_fee_per_km=Decimal("2000"),
        minimum_order_amount=Decimal("10000"),
    )


def _usd() -> CurrencyTable:
    return CurrencyTable(
        code="USD",
        symbol="$",
        decimals=2,
        services={
            "ordinary": ServiceRate("ordinary", "Ordinary", Decimal("1.10"), "2 days",
                                    "Washed, not ironed, unscented"),
            "standard": ServiceRate("standard", "Standard", Decimal("1.35"), "Next day",
                                    "Scented, ironed"),
            "express": ServiceRate("express", "Express", Decimal("2.15"), "Same day",
                                   "Scented, ironed, skips the queue"),
        },
        add_ons={
            "duvet": AddOnRate("duvet", "Duvet Cleaning", "piece", base_price=Decimal("2.70"),
                               max_price=Decimal("8.10"), description="Professional duvet cleaning"),
            "suit": AddOnRate("suit", "Suit Cleaning", "piece", base_price=Decimal("2.70"),
                              max_price=Decimal("5.40"), description="Dry cleaning for suits"),
            "sneaker": AddOnRate("sneaker", "Sneaker Cleaning", "kg", price_per_kg=Decimal("1.35"),
                                 description="Deep cleaning for sneakers"),
            "other": AddOnRate("other", "Other Service", "request",
                               description="Custom request, priced by staff after pickup"),
        },
        delivery_fee_per_km=Decimal("0.55"),
        minimum_order_amount=Decimal("2.70"),
    )


def default_catalog(default_currency: str = "UGX") -> PricingCatalog:
    return PricingCatalog([_ugx(), _usd()], default_currency=default_currency)
