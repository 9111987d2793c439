"""Demo catalog: La Liga and Primeira Liga home jerseys with the standard
size ladders and option groups."""

import logging

from django.db import transaction

from apps.catalog.models import Product, SizeStock, OptionGroup, OptionValue

logger = logging.getLogger(__name__)

ADULT_STOCK = [('XS', 8), ('S', 12), ('M', 15), ('L', 12), ('XL', 10), ('2XL', 6), ('3XL', 4)]
KIDS_STOCK = [('6Y', 10), ('8Y', 10), ('10Y', 10), ('12Y', 10), ('14Y', 10)]
KIDS_PRICE_DELTA = -1000

OPTION_GROUPS = [
    {
        'key': 'size', 'label': 'Size', 'type': OptionGroup.Type.SIZE, 'required': True,
        'values': [(size, size, 0) for size, _ in ADULT_STOCK],
    },
    {
        'key': 'customization', 'label': 'Customization', 'type': OptionGroup.Type.RADIO, 'required': True,
        'values': [
            ('none', 'No customization', 0),
            ('name-number', 'Name & Number', 1500),
            ('badge', 'Competition Badge', 800),
            ('name-number-badge', 'Name & Number + Competition Badge', 2100),
        ],
    },
    {
        'key': 'shorts', 'label': 'Shorts', 'type': OptionGroup.Type.ADDON, 'required': False,
        'values': [('yes', 'Add shorts', 2500)],
    },
    {
        'key': 'socks', 'label': 'Socks', 'type': OptionGroup.Type.ADDON, 'required': False,
        'values': [('yes', 'Add socks', 1200)],
    },
]

# (slug suffix, team, image code, price in cents)
DEMO_PRODUCTS = [
    ('real-madrid', 'Real Madrid', 'rm', 10000),
    ('barcelona', 'FC Barcelona', 'fcb', 8999),
    ('atm', 'Atlético de Madrid', 'atm', 8999),
    ('betis', 'Real Betis', 'betis', 8499),
    ('sevilla', 'Sevilla FC', 'sevilla', 8499),
    ('realsociedad', 'Real Sociedad', 'realsociedad', 8499),
    ('villarreal', 'Villarreal', 'villarreal', 8499),
    ('athletic', 'Athletic Club', 'athletic', 8299),
    ('getafe', 'Getafe CF', 'getafe', 8999),
    ('elche', 'Elche CF', 'elche', 8999),
    ('valencia', 'Valencia CF', 'valencia', 8999),
    ('espanyol', 'RCD Espanyol', 'espanyol', 8999),
    ('alaves', 'Alavés', 'alaves', 8999),
    ('benfica', 'SL Benfica', 'slb', 8499),
    ('sporting', 'Sporting CP', 'scp', 8499),
    ('porto', 'FC Porto', 'fcp', 8499),
    ('braga', 'SC Braga', 'braga', 7999),
    ('vitoria', 'Vitória SC', 'vsc', 7999),
]


def remove_product_by_slug(slug):
    """Delete a product together with its sizes, option groups and values.

    All rows go in one transaction; a failure leaves the product untouched.
    Returns True when something was deleted.
    """
    with transaction.atomic():
        product = Product.objects.select_for_update().filter(slug=slug).first()
        if product is None:
            return False
        OptionValue.objects.filter(group__product=product).delete()
        OptionGroup.objects.filter(product=product).delete()
        SizeStock.objects.filter(product=product).delete()
        product.delete()
    logger.info(f"Removed product {slug}")
    return True


def create_product(slug, name, team, season, images, price_cents, kids_price_delta=KIDS_PRICE_DELTA):
    """Create (or re-create) a product with sizes and the standard option groups."""
    with transaction.atomic():
        remove_product_by_slug(slug)
        product = Product.objects.create(
            slug=slug,
            name=name,
            team=team,
            season=season,
            base_price=price_cents,
            images=images,
            kids_price_delta=kids_price_delta,
            description=(
                f"Official {team} jersey {season}. "
                f"Breathable and comfortable fabric for fans and athletes."
            ),
        )
        SizeStock.objects.bulk_create(
            [SizeStock(product=product, category=SizeStock.ADULT, size=s, stock=n, position=i)
             for i, (s, n) in enumerate(ADULT_STOCK)]
            + [SizeStock(product=product, category=SizeStock.KIDS, size=s, stock=n, position=i)
               for i, (s, n) in enumerate(KIDS_STOCK)]
        )
        for position, group_def in enumerate(OPTION_GROUPS):
            group = OptionGroup.objects.create(
                product=product,
                key=group_def['key'],
                label=group_def['label'],
                type=group_def['type'],
                required=group_def['required'],
                position=position,
            )
            OptionValue.objects.bulk_create([
                OptionValue(group=group, value=value, label=label, price_delta=delta, position=i)
                for i, (value, label, delta) in enumerate(group_def['values'])
            ])
    logger.info(f"Seeded product {slug}")
    return product


def seed_demo_catalog(season='25/26'):
    suffix = season.replace('/', '-')
    created = []
    for key, team, code, price in DEMO_PRODUCTS:
        created.append(create_product(
            slug=f'jersey-{key}-{suffix}',
            name=f'{team} Jersey {season}',
            team=team,
            season=season,
            images=[f'/img/{code}-front-{suffix}.png', f'/img/{code}-back-{suffix}.png'],
            price_cents=price,
        ))
    return created
