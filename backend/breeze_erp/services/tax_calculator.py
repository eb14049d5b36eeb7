"""GST totals calculator.

Pure functions over an ordered list of line items and two state codes.
No I/O and no exceptions: while a draft is being edited, blank or non-numeric
quantities, rates and GST percentages count as zero.

Rules:
  line taxable value = quantity * unit rate
  line GST           = taxable value * gst percent / 100
  intra-state (supplier state == recipient state): CGST = SGST = GST / 2
  inter-state:                                     IGST = GST

Accumulation is done at full float precision; values are rounded HALF_UP to
two decimals once, when totals are produced. ``invoice_total`` is the sum of
the rounded components, so it always equals taxable + cgst + sgst + igst.
Negative inputs are not rejected here; submission endpoints run
:func:`validate_line_items` first.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from ..models.database import GSTIN_PATTERN
from ..utils.money import quantize_money, round_money

GST_RATES: Tuple[int, ...] = (0, 5, 12, 18, 28)

STATE_CODES: Dict[str, str] = {
    "01": "Jammu and Kashmir",
    "02": "Himachal Pradesh",
    "03": "Punjab",
    "04": "Chandigarh",
    "05": "Uttarakhand",
    "06": "Haryana",
    "07": "Delhi",
    "08": "Rajasthan",
    "09": "Uttar Pradesh",
    "10": "Bihar",
    "11": "Sikkim",
    "12": "Arunachal Pradesh",
    "13": "Nagaland",
    "14": "Manipur",
    "15": "Mizoram",
    "16": "Tripura",
    "17": "Meghalaya",
    "18": "Assam",
    "19": "West Bengal",
    "20": "Jharkhand",
    "21": "Odisha",
    "22": "Chhattisgarh",
    "23": "Madhya Pradesh",
    "24": "Gujarat",
    "26": "Dadra and Nagar Haveli and Daman and Diu",
    "27": "Maharashtra",
    "29": "Karnataka",
    "30": "Goa",
    "31": "Lakshadweep",
    "32": "Kerala",
    "33": "Tamil Nadu",
    "34": "Puducherry",
    "35": "Andaman and Nicobar Islands",
    "36": "Telangana",
    "37": "Andhra Pradesh",
    "38": "Ladakh",
}

# Client form keys accepted alongside the canonical field names
_QUANTITY_KEYS = ("quantity", "qty")
_RATE_KEYS = ("unit_rate", "rate", "unit_price", "unitPrice")
_GST_KEYS = ("gst_percent", "gstPercent", "gst_rate", "gstRate", "gst")
_HSN_KEYS = ("hsn_code", "hsn", "hsnCode")
_DESCRIPTION_KEYS = ("description", "product", "item_name", "itemName", "particulars", "name")


def to_number(value: Any) -> float:
    """Loose numeric coercion: None, blanks, junk, NaN and infinities become 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def _first(data: Mapping[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


@dataclass(frozen=True)
class LineItem:
    description: str = ""
    hsn_code: str = ""
    quantity: float = 0.0
    unit_rate: float = 0.0
    gst_percent: float = 0.0

    @property
    def taxable_value(self) -> float:
        return self.quantity * self.unit_rate

    @property
    def gst_amount(self) -> float:
        return self.taxable_value * self.gst_percent / 100

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "LineItem":
        return cls(
            description=str(_first(data, _DESCRIPTION_KEYS) or ""),
            hsn_code=str(_first(data, _HSN_KEYS) or "").strip(),
            quantity=to_number(_first(data, _QUANTITY_KEYS)),
            unit_rate=to_number(_first(data, _RATE_KEYS)),
            gst_percent=to_number(_first(data, _GST_KEYS)),
        )


ItemInput = Union[LineItem, Mapping[str, Any]]


@dataclass(frozen=True)
class TaxSplit:
    cgst: float
    sgst: float
    igst: float


@dataclass(frozen=True)
class InvoiceTotals:
    taxable_value: float
    cgst: float
    sgst: float
    igst: float
    invoice_total: float

    @property
    def gst_total(self) -> float:
        return round_money(quantize_money(self.cgst) + quantize_money(self.sgst) + quantize_money(self.igst))

    def as_dict(self) -> Dict[str, float]:
        data = asdict(self)
        data["gst_total"] = self.gst_total
        return data


ZERO_TOTALS = InvoiceTotals(0.0, 0.0, 0.0, 0.0, 0.0)


def normalize_state_code(code: Any) -> str:
    text = str(code or "").strip()
    if text.isdigit() and len(text) == 1:
        return text.zfill(2)
    return text


def is_intra_state(supplier_state: Any, recipient_state: Any) -> bool:
    return normalize_state_code(supplier_state) == normalize_state_code(recipient_state)


def split_tax(gst_amount: float, intra_state: bool) -> TaxSplit:
    """Unrounded CGST/SGST/IGST split for one GST amount."""
    if intra_state:
        half = gst_amount / 2
        return TaxSplit(cgst=half, sgst=half, igst=0.0)
    return TaxSplit(cgst=0.0, sgst=0.0, igst=gst_amount)


def coerce_items(items: Optional[Iterable[ItemInput]]) -> List[LineItem]:
    coerced: List[LineItem] = []
    for item in items or []:
        if isinstance(item, LineItem):
            coerced.append(item)
        elif isinstance(item, Mapping):
            coerced.append(LineItem.from_mapping(item))
    return coerced


def _present(taxable: float, gst: float, intra_state: bool) -> InvoiceTotals:
    split = split_tax(gst, intra_state)
    taxable_d = quantize_money(taxable)
    if intra_state:
        half = quantize_money(split.cgst)
        cgst_d, sgst_d, igst_d = half, half, quantize_money(0)
    else:
        cgst_d, sgst_d, igst_d = quantize_money(0), quantize_money(0), quantize_money(split.igst)
    total_d = taxable_d + cgst_d + sgst_d + igst_d
    return InvoiceTotals(
        taxable_value=float(taxable_d),
        cgst=float(cgst_d),
        sgst=float(sgst_d),
        igst=float(igst_d),
        invoice_total=float(total_d),
    )


def calculate_totals(
    items: Optional[Iterable[ItemInput]],
    supplier_state: Any,
    recipient_state: Any,
) -> InvoiceTotals:
    """Compute invoice totals; deterministic and side-effect free."""
    lines = coerce_items(items)
    if not lines:
        return ZERO_TOTALS
    taxable = 0.0
    gst = 0.0
    for line in lines:
        taxable += line.taxable_value
        gst += line.gst_amount
    return _present(taxable, gst, is_intra_state(supplier_state, recipient_state))


def line_breakdown(
    items: Optional[Iterable[ItemInput]],
    supplier_state: Any,
    recipient_state: Any,
) -> List[Dict[str, Any]]:
    """Per-line presentation values, in input order."""
    intra = is_intra_state(supplier_state, recipient_state)
    rows: List[Dict[str, Any]] = []
    for index, line in enumerate(coerce_items(items), start=1):
        totals = _present(line.taxable_value, line.gst_amount, intra)
        rows.append({
            "sl_no": index,
            "description": line.description,
            "hsn_code": line.hsn_code,
            "quantity": line.quantity,
            "unit_rate": line.unit_rate,
            "gst_percent": line.gst_percent,
            "taxable_value": totals.taxable_value,
            "cgst": totals.cgst,
            "sgst": totals.sgst,
            "igst": totals.igst,
            "total": totals.invoice_total,
        })
    return rows


def hsn_summary(
    items: Optional[Iterable[ItemInput]],
    supplier_state: Any,
    recipient_state: Any,
) -> List[Dict[str, Any]]:
    """Group taxable value and tax by (HSN code, GST rate), sorted by HSN."""
    intra = is_intra_state(supplier_state, recipient_state)
    groups: Dict[Tuple[str, float], List[float]] = {}
    for line in coerce_items(items):
        key = (line.hsn_code, line.gst_percent)
        acc = groups.setdefault(key, [0.0, 0.0, 0.0])
        acc[0] += line.quantity
        acc[1] += line.taxable_value
        acc[2] += line.gst_amount
    summary = []
    for (hsn, rate), (quantity, taxable, gst) in sorted(groups.items()):
        totals = _present(taxable, gst, intra)
        summary.append({
            "hsn_code": hsn,
            "gst_percent": rate,
            "quantity": quantity,
            "taxable_value": totals.taxable_value,
            "cgst": totals.cgst,
            "sgst": totals.sgst,
            "igst": totals.igst,
            "total": totals.invoice_total,
        })
    return summary


def state_name(code: Any) -> Optional[str]:
    return STATE_CODES.get(normalize_state_code(code))


def state_code_from_gstin(gstin: Optional[str]) -> Optional[str]:
    """First two characters of a GSTIN when they name a known state."""
    if not gstin:
        return None
    prefix = gstin.strip()[:2]
    return prefix if prefix in STATE_CODES else None


def validate_gstin(gstin: Optional[str]) -> bool:
    if not gstin:
        return False
    return bool(GSTIN_PATTERN.match(gstin.strip().upper()))


def validate_line_items(items: Optional[Iterable[ItemInput]]) -> List[str]:
    """Submission-time checks; returns human readable problems (empty when valid)."""
    problems: List[str] = []
    for index, line in enumerate(coerce_items(items), start=1):
        if line.quantity <= 0 or not float(line.quantity).is_integer():
            problems.append(f"Item {index}: quantity must be a positive whole number")
        if line.unit_rate < 0:
            problems.append(f"Item {index}: rate cannot be negative")
        if line.gst_percent not in GST_RATES:
            problems.append(
                f"Item {index}: GST rate must be one of {', '.join(str(r) for r in GST_RATES)}")
    return problems


__all__ = [
    "GST_RATES",
    "STATE_CODES",
    "LineItem",
    "TaxSplit",
    "InvoiceTotals",
    "ZERO_TOTALS",
    "to_number",
    "normalize_state_code",
    "is_intra_state",
    "split_tax",
    "coerce_items",
    "calculate_totals",
    "line_breakdown",
    "hsn_summary",
    "state_name",
    "state_code_from_gstin",
    "validate_gstin",
    "validate_line_items",
]
