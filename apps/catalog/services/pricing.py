"""Configurator pricing.

A product's option schema is the list of plain dicts returned by
``Product.option_schema()``. The shopper's choices are a *selection*: a dict
mapping a group key to either ``SingleChoice`` (RADIO and SIZE groups) or
``MultiChoice`` (ADDON groups). A missing key means nothing is selected.
Selections are never mutated in place; ``pick`` and ``toggle_addon`` return
new dicts.

All amounts are integer cents.
"""

import re
from dataclasses import dataclass

from django.core.exceptions import ValidationError

ADULT = 'adult'
KIDS = 'kids'

SIZE = 'SIZE'
RADIO = 'RADIO'
ADDON = 'ADDON'

ADULT_SIZES = ('S', 'M', 'L', 'XL', '2XL', '3XL', '4XL')
KID_SIZES = ('2-3', '3-4', '4-5', '6-7', '8-9', '10-11', '12-13')
DEFAULT_STOCK = 999

PERSONAL_NAME_MAX = 14
PERSONAL_NUMBER_MAX = 2

CUSTOMIZATION_KEY = 'customization'


@dataclass(frozen=True)
class SingleChoice:
    value: str


@dataclass(frozen=True)
class MultiChoice:
    values: frozenset = frozenset()


@dataclass(frozen=True)
class PriceQuote:
    unit_price: int
    addons_total: int
    line_total: int

    def as_dict(self):
        return {
            'unitPrice': self.unit_price,
            'addonsTotal': self.addons_total,
            'lineTotal': self.line_total,
        }


def _split_multi(value):
    """Comma-separated string or list of strings; None for anything else."""
    if isinstance(value, str):
        return [v.strip() for v in value.split(',') if v.strip()]
    if not isinstance(value, (list, tuple)):
        return None
    if not all(v is None or isinstance(v, str) for v in value):
        return None
    return [v.strip() for v in value if v is not None and v.strip()]


def build_selection(groups, raw):
    """Turn a loose ``{key: str | list | None}`` mapping into a selection.

    Raises ValidationError for unknown groups or values, and for a list
    given to a single-choice group.
    """
    by_key = {g['key']: g for g in groups}
    selection = {}
    for key, value in (raw or {}).items():
        group = by_key.get(key)
        if group is None:
            raise ValidationError(f'Unknown option "{key}".')
        if value is None or value == '' or value == []:
            continue

        known = {v['value'] for v in group['values']}
        if group['type'] == ADDON:
            values = _split_multi(value)
            if values is None:
                raise ValidationError(f'Invalid choice for {group["label"]}.')
            unknown = [v for v in values if v not in known]
            if unknown:
                raise ValidationError(f'Invalid choice for {group["label"]}: {", ".join(unknown)}.')
            if values:
                selection[key] = MultiChoice(frozenset(values))
            continue

        if not isinstance(value, str):
            raise ValidationError(f'{group["label"]} accepts a single choice.')
        # Sizes are checked against stock rows by validate_for_cart.
        if group['type'] == RADIO and value not in known:
            raise ValidationError(f'Invalid choice for {group["label"]}: {value}.')
        selection[key] = SingleChoice(value)
    return selection


def pick(selection, key, value):
    updated = dict(selection)
    if value is None or value == '':
        updated.pop(key, None)
    else:
        updated[key] = SingleChoice(value)
    return updated


def toggle_addon(selection, key, value, checked):
    current = selection.get(key)
    values = set(current.values) if isinstance(current, MultiChoice) else set()
    if checked:
        values.add(value)
    else:
        values.discard(value)

    updated = dict(selection)
    if values:
        updated[key] = MultiChoice(frozenset(values))
    else:
        updated.pop(key, None)
    return updated


def compute_price(base_price, groups, selection, quantity=1, size_category=ADULT, kids_price_delta=None):
    """Jersey (unit) price, add-on total and line total for a selection.

    unit  = base + kids delta (kids only) + single-choice deltas
    line  = (unit + add-on deltas) * quantity
    """
    unit_price = int(base_price)
    if size_category == KIDS and kids_price_delta is not None:
        unit_price += int(kids_price_delta)

    addons_total = 0
    for group in groups:
        choice = selection.get(group['key'])
        if choice is None:
            continue
        deltas = {v['value']: int(v['price_delta']) for v in group['values']}

        if group['type'] == ADDON:
            values = choice.values if isinstance(choice, MultiChoice) else (choice.value,)
            addons_total += sum(deltas.get(v, 0) for v in values)
        else:
            if isinstance(choice, MultiChoice):
                raise ValueError(f'Group "{group["key"]}" accepts a single choice')
            unit_price += deltas.get(choice.value, 0)

    line_total = (unit_price + addons_total) * int(quantity)
    return PriceQuote(unit_price=unit_price, addons_total=addons_total, line_total=line_total)


def validate_for_cart(size, stock_by_size, quantity):
    """Checks run before anything is written to the cart."""
    if not size:
        raise ValidationError('Please choose a size first.')
    if stock_by_size.get(size, 0) <= 0:
        raise ValidationError('This size is unavailable.')
    try:
        quantity = int(quantity)
    except (TypeError, ValueError):
        raise ValidationError('Quantity must be at least 1.')
    if quantity < 1:
        raise ValidationError('Quantity must be at least 1.')
    return quantity


def is_kid_product(name):
    return 'kid' in (name or '').lower()


def default_sizes(category):
    sizes = KID_SIZES if category == KIDS else ADULT_SIZES
    return {s: DEFAULT_STOCK for s in sizes}


def sanitize_personal_name(value):
    cleaned = re.sub(r"[^A-Z .'-]", '', str(value or '').upper())
    return cleaned[:PERSONAL_NAME_MAX]


def sanitize_personal_number(value):
    return re.sub(r'[^0-9]', '', str(value or ''))[:PERSONAL_NUMBER_MAX]


def _customization_value(selection):
    choice = selection.get(CUSTOMIZATION_KEY)
    if isinstance(choice, SingleChoice):
        return choice.value
    return ''


def wants_name_number(selection):
    return 'name-number' in _customization_value(selection)


def wants_badges(selection):
    return 'badge' in _customization_value(selection)


def personalization_for(selection, name, number):
    """Name/number payload for the cart line, or None when not requested."""
    if not wants_name_number(selection):
        return None
    name = sanitize_personal_name(name).strip()
    number = sanitize_personal_number(number)
    if not name and not number:
        return None
    return {'name': name, 'number': number}


def cart_options(selection):
    """Flatten a selection to the ``{key: str | None}`` shape the cart stores."""
    flat = {}
    for key, choice in selection.items():
        if isinstance(choice, MultiChoice):
            flat[key] = ','.join(sorted(choice.values)) or None
        else:
            flat[key] = choice.value
    return flat
