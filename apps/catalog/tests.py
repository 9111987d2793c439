import json
import random
from io import StringIO

from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.test import TestCase, Client, override_settings

from apps.catalog.models import Product, SizeStock, OptionGroup, OptionValue
from apps.catalog.services import categories
from apps.catalog.services.club_names import (
    ClubVocabulary, club_label, clean_team_value, hard_clamp, normalize_club_name,
    slugify_club, team_name_from_slug, title_case_smart,
)
from apps.catalog.services.listing import (
    FALLBACK_IMAGE, FALLBACK_NAME, ProductCard, card_from_payload, cards_from_payload,
    price_cents_from_payload, sale_for,
)
from apps.catalog.services.pricing import (
    ADDON, ADULT, KIDS, RADIO, SIZE, MultiChoice, SingleChoice, build_selection,
    cart_options, compute_price, personalization_for, pick, sanitize_personal_name,
    sanitize_personal_number, toggle_addon, validate_for_cart,
)
from apps.catalog.services.search import clamp_limit, search_products, suggest_payload
from apps.catalog.services.seeding import (
    DEMO_PRODUCTS, create_product, remove_product_by_slug, seed_demo_catalog,
)


JERSEY_GROUPS = [
    {
        'key': 'size', 'label': 'Size', 'type': SIZE, 'required': True,
        'values': [{'value': s, 'label': s, 'price_delta': 0} for s in ('S', 'M', 'L')],
    },
    {
        'key': 'customization', 'label': 'Customization', 'type': RADIO, 'required': True,
        'values': [
            {'value': 'none', 'label': 'None', 'price_delta': 0},
            {'value': 'name-number', 'label': 'Name & Number', 'price_delta': 1500},
            {'value': 'badge', 'label': 'Badge', 'price_delta': 800},
        ],
    },
    {
        'key': 'shorts', 'label': 'Shorts', 'type': ADDON, 'required': False,
        'values': [{'value': 'yes', 'label': 'Add shorts', 'price_delta': 2500}],
    },
    {
        'key': 'socks', 'label': 'Socks', 'type': ADDON, 'required': False,
        'values': [{'value': 'yes', 'label': 'Add socks', 'price_delta': 1200}],
    },
]


class ClubLabelTests(TestCase):
    def test_full_name_with_variant_and_season(self):
        self.assertEqual(club_label('', 'Real Madrid Home Jersey 25/26'), 'Real Madrid')

    def test_bare_madrid_is_not_real_madrid(self):
        self.assertNotEqual(normalize_club_name('Madrid City Store Jersey'), 'Real Madrid')
        self.assertNotEqual(club_label('', 'Madrid Away Kit'), 'Real Madrid')

    def test_team_field_takes_precedence(self):
        self.assertEqual(club_label('Benfica', 'Porto Home Jersey'), 'SL Benfica')

    def test_trailing_colour_and_descriptor_words_stripped(self):
        self.assertEqual(club_label('Chelsea Shadow Black', ''), 'Chelsea')

    def test_ampersand_colour_suffix_dropped(self):
        self.assertEqual(clean_team_value('Milan Red & Black'), 'Milan')

    def test_sentinel_team_falls_back_to_name(self):
        self.assertEqual(club_label('CLUB', 'FC Porto Away Jersey 2025'), 'FC Porto')
        self.assertEqual(club_label(' team ', 'Sporting CP Home Kit'), 'Sporting CP')

    def test_team_clamped_to_sentinel_falls_back_to_name(self):
        self.assertEqual(club_label('Team FC', 'SL Benfica Home Jersey 25/26'), 'SL Benfica')

    def test_season_stripped_from_team(self):
        self.assertEqual(clean_team_value('Club Home Kit 2025'), '')
        self.assertEqual(clean_team_value('Benfica 25/26 Home'), 'Benfica')
        self.assertEqual(club_label('Club Home Kit 2025', 'FC Porto Home Jersey 2025'), 'FC Porto')

    def test_sporting_gijon_is_not_sporting_cp(self):
        self.assertNotEqual(club_label('', 'Sporting Gijon Home Jersey'), 'Sporting CP')

    def test_multiword_starter_kept_whole(self):
        self.assertEqual(club_label('Manchester United Away', ''), 'Manchester United')

    def test_unknown_multiword_clamped_to_first_word(self):
        self.assertEqual(hard_clamp('Galatasaray Lion'), 'Galatasaray')
        self.assertEqual(hard_clamp('Fenerbahce Istanbul'), 'Fenerbahce')

    def test_name_inference_cuts_at_boundary(self):
        self.assertEqual(club_label(None, 'Ajax Retro Long Sleeve 1995'), 'Ajax')

    def test_retro_is_strippable(self):
        self.assertEqual(clean_team_value('Celtic Retro'), 'Celtic')

    def test_total_on_empty_inputs(self):
        for value in (None, '', '   ', 'CLUB', 'Team', 'club jersey', '25/26'):
            label = normalize_club_name(value)
            self.assertIsInstance(label, str)
            self.assertNotIn(label.upper(), ('CLUB', 'TEAM'))

    def test_idempotent(self):
        samples = [
            'Real Madrid Home Jersey 25/26', 'Madrid City Store Jersey', 'Chelsea Shadow Black',
            'atlético madrid', 'ac milan', 'PSG', 'Vitoria SC Away', 'barça', 'Inter Miami Pink',
            'Club Brugge', 'Home', 'de', '  sl   benfica  ', 'Galatasaray Lion Kit', '2026',
        ]
        for value in samples:
            once = normalize_club_name(value)
            self.assertEqual(normalize_club_name(once), once, value)

    def test_title_case_keeps_acronyms_and_joiners(self):
        self.assertEqual(title_case_smart('PSG'), 'PSG')
        self.assertEqual(title_case_smart('bayern of munich'), 'Bayern of Munich')

    def test_slug_roundtrip_for_canonical_club(self):
        self.assertEqual(slugify_club('Atlético de Madrid'), 'atletico-de-madrid')
        self.assertEqual(team_name_from_slug('atletico-de-madrid'), 'Atlético de Madrid')
        self.assertEqual(team_name_from_slug('aston-villa'), 'Aston Villa')

    def test_custom_vocabulary(self):
        vocab = ClubVocabulary(version='test', patterns=((r'\bspurs\b', 'Tottenham Hotspur'),))
        self.assertEqual(club_label('Spurs Home', '', vocab), 'Tottenham Hotspur')
        self.assertEqual(club_label('Real Madrid', '', vocab), 'Real Madrid')


class PricingTests(TestCase):
    def test_additive_price(self):
        selection = build_selection(JERSEY_GROUPS, {
            'size': 'M', 'customization': 'name-number', 'shorts': ['yes'], 'socks': 'yes',
        })
        price = compute_price(8999, JERSEY_GROUPS, selection, quantity=2)
        self.assertEqual(price.unit_price, 10499)
        self.assertEqual(price.addons_total, 3700)
        self.assertEqual(price.line_total, 28398)

    def test_kids_delta_applied_once(self):
        selection = {'customization': SingleChoice('badge')}
        adult = compute_price(8999, JERSEY_GROUPS, selection, size_category=ADULT, kids_price_delta=-1000)
        kids = compute_price(8999, JERSEY_GROUPS, selection, size_category=KIDS, kids_price_delta=-1000)
        back = compute_price(8999, JERSEY_GROUPS, selection, size_category=ADULT, kids_price_delta=-1000)
        self.assertEqual(kids.unit_price - adult.unit_price, -1000)
        self.assertEqual(back, adult)

    def test_kids_without_delta(self):
        price = compute_price(8999, JERSEY_GROUPS, {}, size_category=KIDS, kids_price_delta=None)
        self.assertEqual(price.unit_price, 8999)

    def test_unknown_group_rejected(self):
        with self.assertRaises(ValidationError):
            build_selection(JERSEY_GROUPS, {'sleeves': 'long'})

    def test_invalid_radio_value_rejected(self):
        with self.assertRaises(ValidationError):
            build_selection(JERSEY_GROUPS, {'customization': 'gold-print'})

    def test_list_for_single_group_rejected(self):
        with self.assertRaises(ValidationError):
            build_selection(JERSEY_GROUPS, {'customization': ['none', 'badge']})

    def test_non_string_addon_value_rejected(self):
        for value in (5, True, {'yes': 1}, [1], ['yes', 2]):
            with self.assertRaisesMessage(ValidationError, 'Invalid choice for Shorts.'):
                build_selection(JERSEY_GROUPS, {'shorts': value})

    def test_multi_choice_on_radio_group_raises(self):
        with self.assertRaises(ValueError):
            compute_price(8999, JERSEY_GROUPS, {'customization': MultiChoice(frozenset({'none'}))})

    def test_selection_helpers_do_not_mutate(self):
        start = {}
        with_shorts = toggle_addon(start, 'shorts', 'yes', True)
        self.assertEqual(start, {})
        self.assertEqual(with_shorts['shorts'], MultiChoice(frozenset({'yes'})))
        self.assertNotIn('shorts', toggle_addon(with_shorts, 'shorts', 'yes', False))
        picked = pick(with_shorts, 'customization', 'badge')
        self.assertNotIn('customization', with_shorts)
        self.assertEqual(picked['customization'], SingleChoice('badge'))
        self.assertNotIn('customization', pick(picked, 'customization', None))

    def test_cart_options_flattening(self):
        selection = build_selection(JERSEY_GROUPS, {'customization': 'none', 'shorts': 'yes'})
        self.assertEqual(cart_options(selection), {'customization': 'none', 'shorts': 'yes'})

    def test_validate_for_cart_requires_size_first(self):
        with self.assertRaisesMessage(ValidationError, 'Please choose a size first.'):
            validate_for_cart('', {'M': 5}, 3)
        with self.assertRaisesMessage(ValidationError, 'This size is unavailable.'):
            validate_for_cart('XL', {'M': 5, 'XL': 0}, 1)
        with self.assertRaisesMessage(ValidationError, 'Quantity must be at least 1.'):
            validate_for_cart('M', {'M': 5}, 0)
        self.assertEqual(validate_for_cart('M', {'M': 5}, '2'), 2)

    def test_personalization_sanitized(self):
        self.assertEqual(sanitize_personal_name('vinícius jr.123'), 'VINCIUS JR.')
        self.assertEqual(sanitize_personal_name('Alexander-Arnold'), 'ALEXANDER-ARNO')
        self.assertEqual(sanitize_personal_number('1a2b3'), '12')
        selection = {'customization': SingleChoice('name-number')}
        self.assertEqual(personalization_for(selection, 'Pedri', '8'), {'name': 'PEDRI', 'number': '8'})
        self.assertIsNone(personalization_for({'customization': SingleChoice('badge')}, 'Pedri', '8'))


class ListingTests(TestCase):
    def test_card_from_drifted_payload(self):
        card = card_from_payload({
            'productId': 7,
            'title': 'SL Benfica Home Jersey 25/26',
            'mainImageUrl': '/img/slb.png',
            'currentPrice': '84.99',
        })
        self.assertEqual(card.id, 7)
        self.assertEqual(card.img, '/img/slb.png')
        self.assertEqual(card.price_cents, 8499)
        self.assertEqual(card.club_label, 'SL Benfica')

    def test_fallbacks(self):
        card = card_from_payload({'id': 3, 'images': []})
        self.assertEqual(card.name, FALLBACK_NAME)
        self.assertEqual(card.img, FALLBACK_IMAGE)
        self.assertIsNone(card.price_cents)

    def test_non_dict_payloads_skipped(self):
        cards = cards_from_payload([None, 'junk', {'name': 'Porto Jersey', 'images': [{'url': '/a.png'}]}])
        self.assertEqual(len(cards), 1)
        self.assertEqual(cards[0].img, '/a.png')

    def test_base_price_units(self):
        self.assertEqual(price_cents_from_payload({'basePrice': 8999}), 8999)
        self.assertEqual(price_cents_from_payload({'basePrice': 89.99}), 8999)
        self.assertEqual(price_cents_from_payload({'priceCents': 4999}), 4999)

    def test_non_finite_prices_are_unpriced(self):
        for raw in ({'price': 'inf'}, {'price': 'nan'}, {'currentPrice': float('inf')}, {'basePrice': float('nan')}):
            self.assertIsNone(price_cents_from_payload(raw), raw)
        cards = cards_from_payload([{'name': 'X', 'price': 'inf'}, {'name': 'Y', 'price': '79.99'}])
        self.assertIsNone(cards[0].price_cents)
        self.assertEqual(cards[1].price_cents, 7999)

    def test_sale_points(self):
        self.assertEqual(sale_for(2999), {'compareAtCents': 7000, 'pct': 57})
        self.assertIsNone(sale_for(8999))
        self.assertIsNone(sale_for(None))


def _card(name, price=None, team=''):
    return ProductCard(id=name, name=name, price_cents=price, team=team, club_label=club_label(team, name))


class CategoryTests(TestCase):
    def test_predicates(self):
        self.assertTrue(categories.is_kids_kit(_card('Benfica Kids Kit 25/26')))
        self.assertFalse(categories.is_kids_kit(_card('Benfica Home Jersey 25/26')))
        self.assertTrue(categories.is_player_version_jersey(_card('Porto Player Version Jersey')))
        self.assertFalse(categories.is_standard_jersey(_card('Porto Player Version Jersey')))
        self.assertTrue(categories.is_pre_match_jersey(_card('Sevilla Pre-Match Jersey')))
        self.assertTrue(categories.is_retro_long_sleeve_jersey(_card('Ajax Retro Long Sleeve 1995')))
        self.assertTrue(categories.is_training_sleeveless_set(_card('Braga Sleeveless Training Set')))
        self.assertTrue(categories.is_current_season(_card('Betis Home Jersey 25/26')))
        self.assertFalse(categories.is_adult(_card('Betis Kids Kit')))

    def test_unknown_category(self):
        with self.assertRaises(ValueError):
            categories.get_category('scarves')

    def test_price_sort_puts_unpriced_last(self):
        cards = [_card('A', 3000), _card('B'), _card('C', 1000)]
        asc = categories.sort_cards(cards, categories.SORT_PRICE_ASC)
        desc = categories.sort_cards(cards, categories.SORT_PRICE_DESC)
        self.assertEqual([c.name for c in asc], ['C', 'A', 'B'])
        self.assertEqual([c.name for c in desc], ['A', 'C', 'B'])

    def test_team_sort_by_label(self):
        cards = [_card('Porto Jersey', team='FC Porto'), _card('Benfica Jersey', team='Benfica')]
        self.assertEqual([c.club_label for c in categories.sort_cards(cards)], ['FC Porto', 'SL Benfica'])

    def test_random_sort_is_a_permutation(self):
        cards = [_card(str(i)) for i in range(10)]
        shuffled = categories.sort_cards(cards, categories.SORT_RANDOM, rng=random.Random(4))
        self.assertCountEqual([c.name for c in shuffled], [c.name for c in cards])

    def test_pagination_range(self):
        self.assertEqual(categories.pagination_range(1, 4), [1, 2, 3, 4])
        self.assertEqual(categories.pagination_range(5, 10), [1, 'dots', 4, 5, 6, 'dots', 10])
        self.assertEqual(categories.pagination_range(1, 10), [1, 2, 'dots', 10])

    def test_paginate_clamps_page(self):
        cards = [_card(str(i)) for i in range(25)]
        result = categories.paginate(cards, 99, page_size=12)
        self.assertEqual(result['page'], 3)
        self.assertEqual(len(result['items']), 1)
        self.assertEqual(categories.paginate(cards, 'x', page_size=12)['page'], 1)

    def test_build_listing_filters_and_searches(self):
        cards = [
            _card('Benfica Home Jersey 25/26', 8499, 'SL Benfica'),
            _card('Benfica Kids Kit 25/26', 5999, 'SL Benfica'),
            _card('Porto Home Jersey 25/26', 8499, 'FC Porto'),
        ]
        listing = categories.build_listing(cards, category='jerseys', term='benfica', page_size=12)
        self.assertEqual([c.name for c in listing['items']], ['Benfica Home Jersey 25/26'])


class SeedingTests(TestCase):
    def test_seed_demo_catalog(self):
        seed_demo_catalog()
        self.assertEqual(Product.objects.count(), len(DEMO_PRODUCTS))
        product = Product.objects.get(slug='jersey-real-madrid-25-26')
        self.assertEqual(product.base_price, 10000)
        self.assertEqual(product.kids_price_delta, -1000)
        self.assertTrue(product.has_kids_sizes)
        self.assertEqual([g['key'] for g in product.option_schema()], ['size', 'customization', 'shorts', 'socks'])

    def test_reseed_replaces_product(self):
        first = create_product('jersey-x', 'X Jersey', 'X', '25/26', [], 8999)
        second = create_product('jersey-x', 'X Jersey', 'X', '25/26', [], 7999)
        self.assertEqual(Product.objects.filter(slug='jersey-x').count(), 1)
        self.assertEqual(OptionGroup.objects.filter(product=second).count(), 4)

    def test_remove_product_cleans_dependents(self):
        create_product('jersey-y', 'Y Jersey', 'Y', '25/26', [], 8999)
        self.assertTrue(remove_product_by_slug('jersey-y'))
        self.assertFalse(Product.objects.exists())
        self.assertFalse(SizeStock.objects.exists())
        self.assertFalse(OptionGroup.objects.exists())
        self.assertFalse(OptionValue.objects.exists())
        self.assertFalse(remove_product_by_slug('jersey-y'))

    def test_command(self):
        call_command('seed_catalog', season='24/25', stdout=StringIO())
        self.assertTrue(Product.objects.filter(slug='jersey-porto-24-25').exists())
        call_command('seed_catalog', remove='jersey-porto-24-25', stdout=StringIO())
        self.assertFalse(Product.objects.filter(slug='jersey-porto-24-25').exists())


class SearchTests(TestCase):
    def setUp(self):
        create_product('jersey-benfica-25-26', 'SL Benfica Jersey 25/26', 'SL Benfica', '25/26', ['/img/slb.png'], 8499)
        create_product('jersey-porto-25-26', 'FC Porto Jersey 25/26', 'FC Porto', '25/26', [], 8499)

    def test_terms_are_anded(self):
        self.assertEqual([p.slug for p in search_products('benfica jersey')], ['jersey-benfica-25-26'])
        self.assertEqual(len(search_products('jersey')), 2)
        self.assertEqual(len(search_products('   ')), 0)

    def test_suggestions_need_two_chars(self):
        self.assertEqual(suggest_payload('b'), {'items': []})
        items = suggest_payload('benfica')['items']
        self.assertEqual(items[0]['clubName'], 'SL Benfica')
        self.assertEqual(items[0]['imageUrl'], '/img/slb.png')
        self.assertEqual(items[0]['price'], 84.99)

    def test_clamp_limit(self):
        self.assertEqual(clamp_limit(None), 8)
        self.assertEqual(clamp_limit('50'), 12)
        self.assertEqual(clamp_limit('0'), 1)


@override_settings(CATALOG_PAGE_SIZE=12)
class CatalogViewTests(TestCase):
    def setUp(self):
        self.client = Client()
        self.product = create_product('jersey-barcelona-25-26', 'FC Barcelona Jersey 25/26', 'FC Barcelona', '25/26', [], 8999)

    def test_search_endpoint(self):
        resp = self.client.get('/api/search', {'q': 'barcelona'})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()['products'][0]['slug'], 'jersey-barcelona-25-26')

    def test_category_listing(self):
        resp = self.client.get('/products/c/jerseys/')
        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertEqual(data['total'], 1)
        self.assertEqual(data['items'][0]['clubLabel'], 'FC Barcelona')
        self.assertIn('vocabularyVersion', data)

    def test_unknown_category_404(self):
        self.assertEqual(self.client.get('/products/c/scarves/').status_code, 404)

    def test_product_detail(self):
        resp = self.client.get('/products/jersey-barcelona-25-26/')
        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertEqual(data['sizes']['adult']['M'], 15)
        self.assertEqual(data['sizes']['kids']['10Y'], 10)

    def test_quote(self):
        resp = self.client.post(
            '/products/jersey-barcelona-25-26/quote/',
            data=json.dumps({
                'options': {'customization': 'name-number', 'shorts': 'yes', 'socks': 'yes'},
                'qty': 2,
            }),
            content_type='application/json',
        )
        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertEqual(data['unitPrice'], 10499)
        self.assertEqual(data['lineTotal'], 28398)
        self.assertTrue(data['showPersonalization'])
        self.assertFalse(data['showBadges'])

    def test_quote_kids(self):
        resp = self.client.post(
            '/products/jersey-barcelona-25-26/quote/',
            data=json.dumps({'sizeCategory': 'kids'}),
            content_type='application/json',
        )
        self.assertEqual(resp.json()['unitPrice'], 7999)

    def test_quote_rejects_bad_option(self):
        resp = self.client.post(
            '/products/jersey-barcelona-25-26/quote/',
            data=json.dumps({'options': {'customization': 'gold'}}),
            content_type='application/json',
        )
        self.assertEqual(resp.status_code, 400)

    def test_quote_rejects_non_object_body(self):
        resp = self.client.post('/products/jersey-barcelona-25-26/quote/', data='[1]', content_type='application/json')
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()['error'], 'Invalid JSON')

    def test_quote_rejects_non_string_addon(self):
        resp = self.client.post(
            '/products/jersey-barcelona-25-26/quote/',
            data=json.dumps({'options': {'shorts': 5}}),
            content_type='application/json',
        )
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()['error'], 'Invalid choice for Shorts.')
