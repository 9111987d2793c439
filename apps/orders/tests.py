import json
from unittest.mock import patch

from django.contrib.auth.models import User
from django.test import TestCase, Client, override_settings

from apps.cart.models import Cart, CartItem
from apps.cart.services.cart import PROMO_BUY_1_GET_1, add_to_cart, get_or_create_cart
from apps.catalog.services.listing import FALLBACK_IMAGE, FALLBACK_NAME
from apps.catalog.services.seeding import create_product
from apps.newsletter.tests import MAIL_SETTINGS, FakeEmailClient

from .models import Order, OrderItem
from .services.orders import (
    SNAPSHOT_WARNING, OrderError, create_order_from_cart, item_payload, order_payload,
    parse_snapshot, update_status,
)


def _order(**kwargs):
    defaults = {'email': 'fan@example.com', 'subtotal': 8499, 'total': 8999, 'shipping': 500}
    defaults.update(kwargs)
    return Order.objects.create(**defaults)


class OrderModelTests(TestCase):
    def test_transitions(self):
        order = _order()
        self.assertTrue(order.can_move_to(Order.Status.PAID))
        self.assertTrue(order.can_move_to(Order.Status.CANCELLED))
        self.assertFalse(order.can_move_to(Order.Status.DELIVERED))
        order.status = Order.Status.DELIVERED
        self.assertFalse(order.can_move_to(Order.Status.CANCELLED))
        self.assertTrue(order.can_move_to(Order.Status.DELIVERED))

    def test_short_id(self):
        order = _order()
        self.assertEqual(order.short_id, str(order.id)[:7])


class SnapshotTests(TestCase):
    def test_parse_snapshot(self):
        self.assertEqual(parse_snapshot({'name': 'X'}), ({'name': 'X'}, True))
        self.assertEqual(parse_snapshot('{"name": "X"}'), ({'name': 'X'}, True))
        self.assertEqual(parse_snapshot(None), ({}, True))
        self.assertEqual(parse_snapshot('{not json'), ({}, False))
        self.assertEqual(parse_snapshot('[1, 2]'), ({}, False))
        self.assertEqual(parse_snapshot(42), ({}, False))

    def test_malformed_snapshot_degrades_to_fallbacks(self):
        order = _order()
        item = OrderItem.objects.create(order=order, qty=1, unit_price=8499, total_price=8499, snapshot='{oops')
        with self.assertLogs('apps.orders.services.orders', level='WARNING'):
            data = item_payload(item)
        self.assertEqual(data['name'], FALLBACK_NAME)
        self.assertEqual(data['image'], FALLBACK_IMAGE)
        self.assertEqual(data['options'], {})
        self.assertIsNone(data['personalization'])
        self.assertFalse(data['snapshotOk'])

        with self.assertLogs('apps.orders.services.orders', level='WARNING'):
            payload = order_payload(order)
        self.assertEqual(payload['warning'], SNAPSHOT_WARNING)
        self.assertEqual(payload['items'][0]['totalPrice'], 8499)

    def test_snapshot_fills_missing_columns(self):
        order = _order()
        item = OrderItem.objects.create(
            order=order, qty=1, unit_price=8499, total_price=8499,
            snapshot={'name': 'SL Benfica Jersey', 'image': '/img/slb.png', 'options': {'size': 'M'}},
        )
        data = item_payload(item)
        self.assertEqual(data['name'], 'SL Benfica Jersey')
        self.assertEqual(data['image'], '/img/slb.png')
        self.assertEqual(data['options'], {'size': 'M'})
        self.assertIsNone(order_payload(order)['warning'])


class CreateOrderTests(TestCase):
    def setUp(self):
        self.product = create_product('jersey-porto-25-26', 'FC Porto Jersey 25/26', 'FC Porto', '25/26', ['/img/fcp.png'], 8499)
        self.other = create_product('jersey-braga-25-26', 'SC Braga Jersey 25/26', 'SC Braga', '25/26', [], 7999)
        self.cart = get_or_create_cart('sess-1')

    def test_order_copies_cart_and_empties_it(self):
        add_to_cart(self.cart, self.product, 1, 9999, {'size': 'M'}, {'name': 'PEPE', 'number': '3'})
        add_to_cart(self.cart, self.other, 1, 7999, {'size': 'L'})

        order = create_order_from_cart(self.cart, email='fan@example.com')
        self.assertEqual(order.status, Order.Status.PENDING)
        self.assertEqual(order.subtotal, 9999 + 7999)
        self.assertEqual(order.discount, 7999)
        self.assertEqual(order.total, 9999 + 500)
        self.assertEqual(order.promo_name, PROMO_BUY_1_GET_1)
        self.assertEqual(order.session_id, 'sess-1')
        self.assertFalse(CartItem.objects.filter(cart=self.cart).exists())

        first = order.items.get(product=self.product)
        self.assertEqual(first.name, 'FC Porto Jersey 25/26')
        self.assertEqual(first.image, '/img/fcp.png')
        self.assertEqual(first.snapshot['personalization'], {'name': 'PEPE', 'number': '3'})
        self.assertEqual(first.snapshot['options']['size'], 'M')
        self.assertEqual(order.items.get(product=self.other).free_qty, 1)

    def test_snapshot_survives_product_removal(self):
        add_to_cart(self.cart, self.product, 2, 8499, {'size': 'S'})
        order = create_order_from_cart(self.cart, email='fan@example.com')
        self.product.delete()
        item = order.items.get()
        self.assertIsNone(item.product_id)
        self.assertEqual(item_payload(item)['name'], 'FC Porto Jersey 25/26')

    def test_empty_cart(self):
        with self.assertRaises(OrderError):
            create_order_from_cart(self.cart, email='fan@example.com')
        with self.assertRaises(OrderError):
            create_order_from_cart(None)
        self.assertFalse(Order.objects.exists())


@override_settings(**MAIL_SETTINGS)
class UpdateStatusTests(TestCase):
    def setUp(self):
        self.order = _order(full_name='Rui Costa')
        self.client_stub = FakeEmailClient()

    def test_status_change_emails_customer(self):
        result = update_status(self.order, Order.Status.PAID, client=self.client_stub)
        self.assertEqual(result, {'changed': True, 'emailed': True})
        self.assertEqual(self.order.status, Order.Status.PAID)
        call = self.client_stub.calls[0]
        self.assertEqual(call['to'], 'fan@example.com')
        self.assertIn('Paid', call['subject'])
        self.assertIn(self.order.short_id, call['html'])

    def test_tracking_included(self):
        update_status(self.order, Order.Status.PAID, client=self.client_stub)
        update_status(
            self.order, Order.Status.SHIPPED, tracking_code='CTT123PT',
            tracking_url='https://track.test/CTT123PT', client=self.client_stub,
        )
        self.assertEqual(self.order.tracking_code, 'CTT123PT')
        self.assertIn('CTT123PT', self.client_stub.calls[-1]['text'])

    def test_no_change_sends_nothing(self):
        result = update_status(self.order, Order.Status.PENDING, client=self.client_stub)
        self.assertEqual(result, {'changed': False, 'emailed': False})
        self.assertEqual(self.client_stub.calls, [])

    def test_invalid_transition(self):
        with self.assertRaises(OrderError):
            update_status(self.order, Order.Status.DELIVERED, client=self.client_stub)
        with self.assertRaises(OrderError):
            update_status(self.order, 'lost', client=self.client_stub)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PENDING)

    def test_bad_tracking_url(self):
        with self.assertRaises(OrderError):
            update_status(self.order, Order.Status.PAID, tracking_url='javascript:alert(1)', client=self.client_stub)

    def test_failed_email_does_not_undo_update(self):
        stub = FakeEmailClient(failing={'fan@example.com'})
        result = update_status(self.order, Order.Status.CANCELLED, client=stub)
        self.assertEqual(result, {'changed': True, 'emailed': False})
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.CANCELLED)

    @override_settings(RESEND_API_KEY='')
    def test_missing_mail_config_skips_email(self):
        result = update_status(self.order, Order.Status.PAID, client=self.client_stub)
        self.assertEqual(result, {'changed': True, 'emailed': False})
        self.assertEqual(self.client_stub.calls, [])


class OrderViewTests(TestCase):
    def setUp(self):
        self.client = Client()
        self.product = create_product('jersey-sporting-25-26', 'Sporting CP Jersey 25/26', 'Sporting CP', '25/26', [], 8499)
        self.customer = User.objects.create_user('fan', email='fan@example.com', password='secret1')
        self.staff = User.objects.create_user('shop', email='shop@example.com', password='secret1', is_staff=True)

    def _fill_cart(self, client=None):
        client = client or self.client
        resp = client.post(
            '/cart/add/',
            data=json.dumps({'productId': self.product.pk, 'size': 'M'}),
            content_type='application/json',
        )
        self.assertEqual(resp.status_code, 200)

    def _checkout(self, payload, client=None):
        client = client or self.client
        return client.post('/api/orders', data=json.dumps(payload), content_type='application/json')

    def test_guest_checkout_and_detail(self):
        self._fill_cart()
        resp = self._checkout({'email': 'guest@example.com', 'fullName': 'Eusébio'})
        self.assertEqual(resp.status_code, 201)
        order = resp.json()['order']
        self.assertEqual(order['status'], 'pending')
        self.assertEqual(order['total'], 8499 + 500)
        self.assertEqual(order['items'][0]['name'], 'Sporting CP Jersey 25/26')
        self.assertEqual(Cart.objects.get().items.count(), 0)

        self.assertEqual(self.client.get(f"/api/orders/{order['id']}").status_code, 200)
        self.assertEqual(Client().get(f"/api/orders/{order['id']}").status_code, 404)

    def test_checkout_validation(self):
        self.assertEqual(self._checkout({'email': 'fan@example.com'}).json()['error'], 'Your cart is empty.')
        self._fill_cart()
        self.assertEqual(self._checkout({'email': 'not-an-email'}).json()['error'], 'Please enter a valid email.')
        self.assertEqual(self._checkout({}).json()['error'], 'Please enter your email.')
        resp = self.client.post('/api/orders', data='[1]', content_type='application/json')
        self.assertEqual(resp.status_code, 400)
        self.assertFalse(Order.objects.exists())

    def test_account_orders(self):
        self.assertEqual(self.client.get('/api/account/orders').status_code, 401)
        self.client.force_login(self.customer)
        self._fill_cart()
        order_id = self._checkout({}).json()['order']['id']
        _order(email='someone@example.com')

        orders = self.client.get('/api/account/orders').json()['orders']
        self.assertEqual([o['id'] for o in orders], [order_id])
        self.assertEqual(orders[0]['itemsCount'], 1)
        self.assertNotIn('items', orders[0])

    @override_settings(**MAIL_SETTINGS)
    def test_staff_status_update(self):
        order = _order()
        url = f'/manage/orders/{order.id}/status/'
        body = json.dumps({'status': 'paid'})
        self.assertEqual(self.client.post(url, data=body, content_type='application/json').status_code, 401)
        self.client.force_login(self.customer)
        self.assertEqual(self.client.post(url, data=body, content_type='application/json').status_code, 403)

        self.client.force_login(self.staff)
        stub = FakeEmailClient()
        with patch('apps.orders.services.orders.ResendClient', return_value=stub):
            resp = self.client.post(url, data=body, content_type='application/json')
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.json()['changed'])
        self.assertTrue(resp.json()['emailed'])
        self.assertEqual(resp.json()['order']['status'], 'paid')

        resp = self.client.post(url, data=json.dumps({'status': 'pending'}), content_type='application/json')
        self.assertEqual(resp.status_code, 400)
        resp = self.client.post(url, data=json.dumps({'status': 5}), content_type='application/json')
        self.assertEqual(resp.status_code, 400)
