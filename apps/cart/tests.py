import json

from django.test import TestCase, Client

from apps.cart.models import Cart, CartItem
from apps.cart.services.cart import (
    PROMO_BUY_1_GET_1, PROMO_BUY_2_GET_3, PROMO_BUY_3_GET_5, PROMO_NONE, SHIPPING_CENTS,
    add_to_cart, apply_promotions, cart_summary, clean_personalization, get_or_create_cart,
    normalize_options, promotion_tier,
)
from apps.catalog.models import OptionValue
from apps.catalog.services.seeding import create_product


class PromotionTests(TestCase):
    def test_tiers(self):
        self.assertEqual(promotion_tier(1), PROMO_NONE)
        self.assertEqual(promotion_tier(2), PROMO_BUY_1_GET_1)
        self.assertEqual(promotion_tier(4), PROMO_BUY_2_GET_3)
        self.assertEqual(promotion_tier(7), PROMO_BUY_3_GET_5)

    def test_single_unit_pays_shipping(self):
        promo = apply_promotions([(8999, 1)])
        self.assertEqual(promo['free_units'], 0)
        self.assertEqual(promo['shipping'], SHIPPING_CENTS)

    def test_cheapest_unit_is_free(self):
        promo = apply_promotions([(8999, 1), (7999, 1)])
        self.assertEqual(promo['free_by_line'], [0, 1])
        self.assertEqual(promo['shipping'], SHIPPING_CENTS)

    def test_three_units_ship_free(self):
        promo = apply_promotions([(8999, 3)])
        self.assertEqual(promo['promo_name'], PROMO_BUY_2_GET_3)
        self.assertEqual(promo['free_by_line'], [1])
        self.assertEqual(promo['shipping'], 0)

    def test_free_units_capped_per_order(self):
        promo = apply_promotions([(8999, 4), (5999, 4)])
        self.assertEqual(promo['free_units'], 2)
        self.assertEqual(promo['free_by_line'], [0, 2])


class CartServiceTests(TestCase):
    def setUp(self):
        self.product = create_product('jersey-porto-25-26', 'FC Porto Jersey 25/26', 'FC Porto', '25/26', [], 8499)
        self.cart = get_or_create_cart('abc123')

    def test_normalize_options(self):
        self.assertEqual(normalize_options({'b': 1, 'a': 'x', 'c': None, 'd': ''}), {'a': 'x', 'b': '1'})

    def test_clean_personalization(self):
        self.assertEqual(clean_personalization({'name': ' Pepe ', 'number': '#3a'}), {'name': 'PEPE', 'number': '3'})
        self.assertIsNone(clean_personalization({'name': '', 'number': ''}))
        self.assertIsNone(clean_personalization(None))

    def test_identical_lines_merge(self):
        first = add_to_cart(self.cart, self.product, 1, 8499, {'size': 'M'})
        second = add_to_cart(self.cart, self.product, 2, 8499, {'size': 'M'})
        self.assertEqual(first.pk, second.pk)
        second.refresh_from_db()
        self.assertEqual(second.qty, 3)
        self.assertEqual(second.total_price, 8499 * 3)

    def test_different_personalization_is_new_line(self):
        add_to_cart(self.cart, self.product, 1, 9999, {'size': 'M'}, {'name': 'PEPE', 'number': '3'})
        add_to_cart(self.cart, self.product, 1, 9999, {'size': 'M'}, {'name': 'OTAVIO', 'number': '25'})
        self.assertEqual(self.cart.items.count(), 2)
        item = self.cart.items.order_by('id').first()
        self.assertEqual(item.options['custName'], 'PEPE')
        self.assertEqual(item.options['custNumber'], '3')

    def test_merge_capped(self):
        add_to_cart(self.cart, self.product, 90, 8499, {'size': 'L'})
        item = add_to_cart(self.cart, self.product, 20, 8499, {'size': 'L'})
        item.refresh_from_db()
        self.assertEqual(item.qty, 99)

    def test_summary(self):
        other = create_product('jersey-braga-25-26', 'SC Braga Jersey 25/26', 'SC Braga', '25/26', [], 7999)
        add_to_cart(self.cart, self.product, 2, 8499, {'size': 'M'})
        add_to_cart(self.cart, other, 1, 7999, {'size': 'S'})
        summary = cart_summary(self.cart)
        self.assertEqual(summary['subtotal'], 8499 * 2 + 7999)
        self.assertEqual(summary['discount'], 7999)
        self.assertEqual(summary['shipping'], 0)
        self.assertEqual(summary['total'], 8499 * 2)
        self.assertTrue(summary['promotion']['hasPromotion'])

    def test_empty_summary(self):
        self.assertEqual(cart_summary(None)['total'], 0)


class CartViewTests(TestCase):
    def setUp(self):
        self.client = Client()
        self.product = create_product('jersey-betis-25-26', 'Real Betis Jersey 25/26', 'Real Betis', '25/26', [], 8499)

    def _add(self, payload):
        return self.client.post('/cart/add/', data=json.dumps(payload), content_type='application/json')

    def test_add_without_size_rejected_before_write(self):
        resp = self._add({
            'productId': self.product.pk,
            'qty': 2,
            'options': {'customization': 'none', 'shorts': 'yes'},
        })
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()['error'], 'Please choose a size first.')
        self.assertFalse(Cart.objects.exists())
        self.assertFalse(CartItem.objects.exists())

    def test_add_and_summary(self):
        resp = self._add({
            'productId': self.product.pk,
            'size': 'M',
            'qty': 2,
            'options': {'customization': 'name-number', 'socks': 'yes'},
            'personalization': {'name': 'Isco', 'number': '22'},
        })
        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertTrue(data['ok'])
        self.assertEqual(data['lineTotal'], (8499 + 1500 + 1200) * 2)

        item = CartItem.objects.get(pk=data['itemId'])
        self.assertEqual(item.options['size'], 'M')
        self.assertEqual(item.options['sizeCategory'], 'adult')
        self.assertEqual(item.personalization, {'name': 'ISCO', 'number': '22'})

        summary = self.client.get('/cart/summary/').json()
        self.assertEqual(summary['count'], 1)
        self.assertEqual(summary['promotion']['promoName'], PROMO_BUY_1_GET_1)

    def test_kids_size_priced_with_delta(self):
        resp = self._add({'productId': self.product.pk, 'size': '10Y', 'sizeCategory': 'kids'})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()['lineTotal'], 7499)

    def test_adult_size_not_valid_for_kids(self):
        resp = self._add({'productId': self.product.pk, 'size': 'XL', 'sizeCategory': 'kids'})
        self.assertEqual(resp.status_code, 400)

    def test_unknown_product(self):
        resp = self._add({'productId': 'nope', 'size': 'M'})
        self.assertEqual(resp.status_code, 404)

    def test_change_qty_and_remove(self):
        item_id = self._add({'productId': self.product.pk, 'size': 'S'}).json()['itemId']
        resp = self.client.post(
            f'/cart/items/{item_id}/qty/', data=json.dumps({'qty': 3}), content_type='application/json',
        )
        self.assertEqual(resp.json()['totalPrice'], 8499 * 3)
        self.assertEqual(self.client.post(f'/cart/items/{item_id}/remove/').status_code, 200)
        self.assertFalse(CartItem.objects.exists())

    def test_other_session_cannot_touch_item(self):
        item_id = self._add({'productId': self.product.pk, 'size': 'S'}).json()['itemId']
        stranger = Client()
        self.assertEqual(stranger.post(f'/cart/items/{item_id}/remove/').status_code, 404)

    def test_non_object_bodies_rejected(self):
        resp = self.client.post('/cart/add/', data='[1]', content_type='application/json')
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()['error'], 'Invalid JSON')

        item_id = self._add({'productId': self.product.pk, 'size': 'S'}).json()['itemId']
        resp = self.client.post(f'/cart/items/{item_id}/qty/', data='[1]', content_type='application/json')
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()['error'], 'Invalid quantity')

    def test_size_delta_priced_like_quote(self):
        OptionValue.objects.filter(group__product=self.product, group__key='size', value='XL').update(price_delta=300)
        quote = self.client.post(
            f'/products/{self.product.slug}/quote/',
            data=json.dumps({'options': {'size': 'XL', 'shorts': 'yes'}}),
            content_type='application/json',
        ).json()
        resp = self._add({'productId': self.product.pk, 'size': 'XL', 'options': {'shorts': 'yes'}})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(quote['unitPrice'], 8499 + 300)
        self.assertEqual(resp.json()['lineTotal'], quote['lineTotal'])
        item = CartItem.objects.get(pk=resp.json()['itemId'])
        self.assertEqual(item.options['size'], 'XL')
