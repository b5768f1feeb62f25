"""
Coupon descriptors and the import/export file formats.

A Coupon is the unified shape every source is normalized into before
migration: a V2 legacy coupon, a V3 promotion export row, or a user
supplied CSV / JSON file.
"""
import csv
import io
import json
import re
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional

from ..utils.exceptions import CouponFileError, InvalidCouponError

DEFAULT_DISCOUNT = 10.0

PERCENTAGE = 'percentage'
FIXED = 'fixed'
PER_ITEM = 'per_item'
DISCOUNT_TYPES = (PERCENTAGE, FIXED, PER_ITEM)

# Descriptor discount type -> V2 coupon type (CSV "Type" column)
LEGACY_TYPE_NAMES = {
    PERCENTAGE: 'percentage_discount',
    FIXED: 'fixed_discount',
    PER_ITEM: 'per_item_discount',
}

CSV_HEADER = [
    'Code', 'Coupon ID', 'Coupon Name', 'Discount', 'Type',
    'Enabled', 'Max Uses', 'Current Uses', 'Min Purchase', 'Expires',
]

_NUMBER_RE = re.compile(r'[-+]?(\d+\.?\d*|\.\d+)')


def parse_number(value: Any) -> Optional[float]:
    """
    Read the leading number of a value: 10, '10', '10.5%', '$15' -> float.

    Returns None when there is no number.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    match = _NUMBER_RE.search(str(value).strip().lstrip('$'))
    if not match or match.start() != 0:
        return None
    return float(match.group(0))


def parse_int(value: Any) -> Optional[int]:
    number = parse_number(value)
    return int(number) if number is not None else None


def normalize_discount_type(value: Any) -> str:
    """
    Map any known discount type spelling to percentage / fixed / per_item.

    'fixed_discount' -> fixed, 'per_item_discount' / 'per item' -> per_item,
    everything else (including None) -> percentage.
    """
    text = str(value or '').strip().lower()
    if 'fixed' in text:
        return FIXED
    if 'per_item' in text or 'per item' in text:
        return PER_ITEM
    return PERCENTAGE


def normalize_max_uses(value: Any) -> Optional[int]:
    """'Unlimited', blank, None and 0 all mean no limit."""
    if value is None:
        return None
    if isinstance(value, str) and value.strip().lower() in ('', 'unlimited'):
        return None
    return parse_int(value) or None


@dataclass
class Coupon:
    """A coupon code to migrate into a V3 standard promotion."""
    code: str
    discount: float = DEFAULT_DISCOUNT
    discount_type: str = PERCENTAGE
    old_promotion_id: Optional[int] = None
    old_coupon_id: Optional[int] = None
    name: Optional[str] = None
    max_uses: Optional[int] = None

    def __post_init__(self):
        if not isinstance(self.code, str) or not self.code:
            raise InvalidCouponError(self.code)
        if self.discount_type not in DISCOUNT_TYPES:
            self.discount_type = normalize_discount_type(self.discount_type)

    @classmethod
    def from_payload(cls, item: Any) -> 'Coupon':
        """
        Normalize a request / JSON-file item.

        Accepts a bare code string or a dict using any of the accepted
        aliases (code / coupon_code, discountType / discount_type, ...).

        Raises:
            InvalidCouponError: The code is missing or not a string
        """
        if isinstance(item, Coupon):
            return item
        if isinstance(item, str):
            return cls(code=item)
        if not isinstance(item, dict):
            raise InvalidCouponError(item)

        code = item.get('code') or item.get('coupon_code')
        if not isinstance(code, str) or not code:
            raise InvalidCouponError(item)

        return cls(
            code=code,
            discount=parse_number(item.get('discount')) or DEFAULT_DISCOUNT,
            discount_type=normalize_discount_type(
                item.get('discountType') or item.get('discount_type')
            ),
            old_promotion_id=parse_int(item.get('oldPromotionId')),
            old_coupon_id=parse_int(item.get('oldCouponId') or item.get('Coupon ID')),
            name=item.get('name') or item.get('promotion_name') or item.get('Coupon Name'),
            max_uses=normalize_max_uses(item.get('max_uses')),
        )

    @classmethod
    def from_legacy_coupon(cls, coupon: Dict[str, Any]) -> 'Coupon':
        """
        Map a V2 coupon to a descriptor.

        V2 types: percentage_discount / fixed_discount / per_item_discount
        (plus bare 'percentage' / 'fixed'). Unknown types keep the amount
        as a percentage.
        """
        legacy_type = coupon.get('type')
        if legacy_type in ('fixed_discount', 'fixed'):
            discount_type = FIXED
        elif legacy_type == 'per_item_discount':
            discount_type = PER_ITEM
        else:
            discount_type = PERCENTAGE

        return cls(
            code=coupon.get('code'),
            discount=parse_number(coupon.get('amount')) or DEFAULT_DISCOUNT,
            discount_type=discount_type,
            old_coupon_id=coupon.get('id'),
            name=coupon.get('name'),
            max_uses=coupon.get('max_uses') or None,
        )

    def to_payload(self) -> Dict[str, Any]:
        """Wire form used by the API and JSON files."""
        return {
            'code': self.code,
            'discount': self.discount,
            'discountType': self.discount_type,
            'oldPromotionId': self.old_promotion_id,
            'oldCouponId': self.old_coupon_id,
            'name': self.name,
            'max_uses': self.max_uses,
        }

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def coupons_from_legacy(coupons: List[Dict[str, Any]]) -> List[Coupon]:
    """Map V2 coupons, skipping any without a usable code."""
    result = []
    for coupon in coupons:
        try:
            result.append(Coupon.from_legacy_coupon(coupon))
        except InvalidCouponError:
            continue
    return result


def discount_from_rules(rules: List[Dict[str, Any]]) -> tuple:
    """
    Read (discount, discount_type) back out of a V3 promotion's first rule.

    The inverse of the payload built by the migration engine.
    """
    action = (rules[0] if rules else {}).get('action') or {}

    cart_value = ((action.get('cart_value') or {}).get('discount')) or {}
    if cart_value.get('fixed_amount') is not None:
        return parse_number(cart_value['fixed_amount']) or DEFAULT_DISCOUNT, FIXED
    if cart_value.get('percentage_amount') is not None:
        return parse_number(cart_value['percentage_amount']) or DEFAULT_DISCOUNT, PERCENTAGE

    cart_items = ((action.get('cart_items') or {}).get('discount')) or {}
    if cart_items.get('percentage_amount') is not None:
        return parse_number(cart_items['percentage_amount']) or DEFAULT_DISCOUNT, PER_ITEM

    return DEFAULT_DISCOUNT, PERCENTAGE


def coupons_from_promotion_export(exports: List[Dict[str, Any]]) -> List[Coupon]:
    """Flatten [{promotion, codes}] into one descriptor per code."""
    coupons = []
    for entry in exports:
        promotion = entry.get('promotion') or {}
        discount, discount_type = discount_from_rules(promotion.get('rules') or [])
        for code in entry.get('codes') or []:
            if not isinstance(code.get('code'), str) or not code.get('code'):
                continue
            coupons.append(Coupon(
                code=code['code'],
                discount=discount,
                discount_type=discount_type,
                old_promotion_id=promotion.get('id'),
                name=promotion.get('name'),
                max_uses=code.get('max_uses') or None,
            ))
    return coupons


# ==================== CSV ====================

def _find_column(headers: List[str], match) -> int:
    for index, header in enumerate(headers):
        if match(header.lower()):
            return index
    return -1


def _field(fields: List[str], index: int) -> str:
    if index < 0 or index >= len(fields):
        return ''
    return fields[index].strip()


def parse_coupons_csv(content: str) -> List[Coupon]:
    """
    Parse a coupon CSV (the export format, or any file with a Code column).

    Raises:
        CouponFileError: No header/data rows, no Code column, or no codes
    """
    rows = [row for row in csv.reader(io.StringIO(content)) if any(f.strip() for f in row)]
    if len(rows) < 2:
        raise CouponFileError('CSV file must have a header row and at least one data row.')

    headers = [h.strip() for h in rows[0]]
    code_index = _find_column(headers, lambda h: h == 'code')
    if code_index == -1:
        raise CouponFileError('CSV file must have a "Code" column.')

    id_index = _find_column(headers, lambda h: 'coupon id' in h or 'id' in h)
    name_index = _find_column(headers, lambda h: 'name' in h)
    discount_index = _find_column(headers, lambda h: h == 'discount')
    type_index = _find_column(headers, lambda h: h == 'type')
    max_uses_index = _find_column(headers, lambda h: 'max uses' in h)

    coupons = []
    for fields in rows[1:]:
        code = _field(fields, code_index)
        if not code:
            continue

        type_text = _field(fields, type_index) if type_index >= 0 else 'percentage_discount'

        coupons.append(Coupon(
            code=code,
            discount=parse_number(_field(fields, discount_index)) or DEFAULT_DISCOUNT,
            discount_type=normalize_discount_type(type_text),
            old_coupon_id=parse_int(_field(fields, id_index)),
            name=_field(fields, name_index) or None,
            max_uses=normalize_max_uses(_field(fields, max_uses_index)),
        ))

    if not coupons:
        raise CouponFileError('No valid codes found in CSV file.')
    return coupons


def _legacy_discount_label(coupon: Dict[str, Any]):
    amount = coupon.get('amount')
    if coupon.get('type') == 'percentage':
        return f'{amount}%'
    if coupon.get('type') == 'fixed':
        return f'${amount}'
    return amount or 'N/A'


def legacy_coupons_to_csv(coupons: List[Dict[str, Any]]) -> str:
    """Render V2 coupons in the CSV export format."""
    output = io.StringIO()
    writer = csv.writer(output, lineterminator='\n')
    writer.writerow(CSV_HEADER)

    for coupon in coupons:
        if not coupon.get('code'):
            continue
        max_uses = coupon.get('max_uses')
        writer.writerow([
            coupon['code'],
            coupon.get('id') or '',
            coupon.get('name') or '',
            _legacy_discount_label(coupon),
            coupon.get('type') or '',
            'Yes' if coupon.get('enabled') else 'No',
            'Unlimited' if not max_uses else max_uses,
            coupon.get('num_uses') or 0,
            f"${coupon['min_purchase']}" if coupon.get('min_purchase') else 'N/A',
            coupon.get('expires') or 'N/A',
        ])

    return output.getvalue()


def coupons_to_csv(coupons: List[Coupon]) -> str:
    """Render descriptors in the CSV export format (re-importable)."""
    output = io.StringIO()
    writer = csv.writer(output, lineterminator='\n')
    writer.writerow(CSV_HEADER)

    for coupon in coupons:
        writer.writerow([
            coupon.code,
            coupon.old_coupon_id or '',
            coupon.name or '',
            coupon.discount,
            LEGACY_TYPE_NAMES[coupon.discount_type],
            'Yes',
            coupon.max_uses or 'Unlimited',
            0,
            'N/A',
            'N/A',
        ])

    return output.getvalue()


# ==================== JSON ====================

def parse_coupons_json(content: str) -> List[Coupon]:
    """
    Parse a JSON array of descriptors.

    Raises:
        CouponFileError: Not JSON, not an array, an item without a code,
            or an empty array
    """
    try:
        parsed = json.loads(content)
    except ValueError as e:
        raise CouponFileError(f'Error parsing JSON: {e}') from e

    if not isinstance(parsed, list):
        raise CouponFileError('Invalid file format. Expected a JSON array of coupon codes.')

    coupons = []
    for index, item in enumerate(parsed):
        try:
            coupons.append(Coupon.from_payload(item))
        except InvalidCouponError as e:
            raise CouponFileError(f'Item {index}: {e.message}') from e

    if not coupons:
        raise CouponFileError('No valid codes found in file.')
    return coupons


def coupons_to_json(coupons: List[Coupon]) -> str:
    """Render descriptors as the JSON import format."""
    return json.dumps([c.to_payload() for c in coupons], indent=2)


def parse_coupon_file(filename: str, content: str) -> List[Coupon]:
    """Dispatch on file extension: .csv is CSV, anything else is JSON."""
    if (filename or '').lower().endswith('.csv'):
        return parse_coupons_csv(content)
    return parse_coupons_json(content)
