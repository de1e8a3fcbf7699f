"""
Vietnam eVisa Portal — Visa Catalog & Pricing

Static reference data for the service-type step: the four visa types with
their duration options and prices, and the six processing tiers with their
surcharges and turnaround. Pricing helpers are pure functions over this
catalog; an unknown selection prices at 0 so incomplete forms still render.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta


@dataclass(frozen=True)
class VisaDurationOption:
    value: str
    label: str
    description: str
    price: int


@dataclass(frozen=True)
class ProcessingTimeOption:
    value: str
    label: str
    description: str
    additional_fee: int
    business_days: int


@dataclass(frozen=True)
class VisaOption:
    type: str
    label: str
    description: str
    durations: tuple[VisaDurationOption, ...] = field(default_factory=tuple)

    def duration_values(self) -> list[str]:
        return [d.value for d in self.durations]


# ── Visa types ───────────────────────────────────────────────────────

VISA_TYPES: tuple[VisaOption, ...] = (
    VisaOption(
        type="tourist",
        label="Tourist Visa",
        description="For leisure, sightseeing, visiting friends and relatives",
        durations=(
            VisaDurationOption("single", "Single Entry", "Valid for one entry only", 25),
            VisaDurationOption("multiple-1month", "Multiple Entry - 1 Month",
                               "Multiple entries within 1 month", 50),
            VisaDurationOption("multiple-3months", "Multiple Entry - 3 Months",
                               "Multiple entries within 3 months", 65),
        ),
    ),
    VisaOption(
        type="business",
        label="Business Visa",
        description="For business meetings, conferences, trade activities",
        durations=(
            VisaDurationOption("single", "Single Entry", "Valid for one entry only", 45),
            VisaDurationOption("multiple-1month", "Multiple Entry - 1 Month",
                               "Multiple entries within 1 month", 80),
            VisaDurationOption("multiple-3months", "Multiple Entry - 3 Months",
                               "Multiple entries within 3 months", 95),
            VisaDurationOption("multiple-6months", "Multiple Entry - 6 Months",
                               "Multiple entries within 6 months", 135),
            VisaDurationOption("multiple-1year", "Multiple Entry - 1 Year",
                               "Multiple entries within 1 year", 180),
        ),
    ),
    VisaOption(
        type="transit",
        label="Transit Visa",
        description="For passengers in transit through Vietnam",
        durations=(
            VisaDurationOption("single", "Single Entry", "Valid for one transit only", 20),
        ),
    ),
    VisaOption(
        type="diplomatic",
        label="Diplomatic Visa",
        description="For diplomatic passport holders",
        durations=(
            VisaDurationOption("multiple-6months", "Multiple Entry - 6 Months",
                               "Multiple entries within 6 months", 0),
            VisaDurationOption("multiple-1year", "Multiple Entry - 1 Year",
                               "Multiple entries within 1 year", 0),
            VisaDurationOption("multiple-2years", "Multiple Entry - 2 Years",
                               "Multiple entries within 2 years", 0),
            VisaDurationOption("multiple-3years", "Multiple Entry - 3 Years",
                               "Multiple entries within 3 years", 0),
        ),
    ),
)


# ── Processing tiers ─────────────────────────────────────────────────

PROCESSING_TIMES: tuple[ProcessingTimeOption, ...] = (
    ProcessingTimeOption("normal", "Normal Processing",
                         "Standard processing time", 0, 3),
    ProcessingTimeOption("urgent", "Urgent Processing",
                         "Expedited processing", 20, 2),
    ProcessingTimeOption("super-urgent", "Super Urgent Processing",
                         "Super expedited processing", 40, 1),
    ProcessingTimeOption("express", "Express Processing",
                         "Same day processing", 60, 1),
    ProcessingTimeOption("emergency", "Emergency Processing",
                         "Immediate processing for emergencies", 100, 1),
    ProcessingTimeOption("weekend-holiday", "Weekend/Holiday Processing",
                         "Processing on weekends and holidays", 80, 1),
)

VISA_TYPE_VALUES = tuple(v.type for v in VISA_TYPES)
PROCESSING_TIME_VALUES = tuple(p.value for p in PROCESSING_TIMES)
# Union of every duration offered by any visa type, in catalog order
ALL_DURATION_VALUES = tuple(dict.fromkeys(
    d.value for v in VISA_TYPES for d in v.durations
))


# ── Lookups ──────────────────────────────────────────────────────────

def get_visa_option(visa_type: str) -> VisaOption | None:
    return next((v for v in VISA_TYPES if v.type == visa_type), None)


def get_processing_time(value: str) -> ProcessingTimeOption | None:
    return next((p for p in PROCESSING_TIMES if p.value == value), None)


def get_duration_option(visa_type: str, duration: str) -> VisaDurationOption | None:
    visa = get_visa_option(visa_type)
    if visa is None:
        return None
    return next((d for d in visa.durations if d.value == duration), None)


def is_duration_offered(visa_type: str, duration: str) -> bool:
    return get_duration_option(visa_type, duration) is not None


# ── Pricing ──────────────────────────────────────────────────────────

def calculate_total_price(
    visa_type: str,
    duration: str,
    processing_time: str,
    number_of_applicants: int = 1,
) -> float:
    """
    (duration price + processing surcharge) × applicants.

    Returns 0 when either the duration or the processing tier does not
    match the catalog, so a half-filled form still shows a price.
    """
    duration_option = get_duration_option(visa_type, duration)
    processing_option = get_processing_time(processing_time)
    if duration_option is None or processing_option is None:
        return 0.0

    base_price = duration_option.price
    processing_fee = processing_option.additional_fee
    return float((base_price + processing_fee) * number_of_applicants)


def format_price(price: float) -> str:
    return f"${price:.2f}"


def get_estimated_delivery_date(
    processing_time: str, today: date | None = None,
) -> date:
    """
    Today plus the tier's business-day count.

    Calendar days are added as-is; weekends and holidays are not skipped.
    An unknown tier yields today.
    """
    today = today or date.today()
    option = get_processing_time(processing_time)
    if option is None:
        return today
    return today + timedelta(days=option.business_days)


@dataclass(frozen=True)
class PricingQuote:
    """Derived price + turnaround for the current service-type selection."""
    total_price: float
    formatted_price: str
    estimated_delivery_date: date | None

    def to_dict(self) -> dict:
        return {
            "total_price": self.total_price,
            "formatted_price": self.formatted_price,
            "estimated_delivery_date": (
                self.estimated_delivery_date.isoformat()
                if self.estimated_delivery_date else None
            ),
        }


def quote(
    visa_type: str,
    duration: str,
    processing_time: str,
    number_of_applicants: int = 1,
    today: date | None = None,
) -> PricingQuote:
    total = calculate_total_price(
        visa_type, duration, processing_time, number_of_applicants,
    )
    delivery = (
        get_estimated_delivery_date(processing_time, today)
        if processing_time else None
    )
    return PricingQuote(
        total_price=total,
        formatted_price=format_price(total),
        estimated_delivery_date=delivery,
    )


def catalog_as_dict() -> dict:
    """Serializable catalog for the pricing page / API."""
    return {
        "visa_types": [
            {
                "type": v.type,
                "label": v.label,
                "description": v.description,
                "durations": [
                    {
                        "value": d.value,
                        "label": d.label,
                        "description": d.description,
                        "price": d.price,
                    }
                    for d in v.durations
                ],
            }
            for v in VISA_TYPES
        ],
        "processing_times": [
            {
                "value": p.value,
                "label": p.label,
                "description": p.description,
                "additional_fee": p.additional_fee,
                "business_days": p.business_days,
            }
            for p in PROCESSING_TIMES
        ],
    }
