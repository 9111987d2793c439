import json
import threading
from io import StringIO
from unittest import mock

import requests
from django.contrib.auth.models import User
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase, Client, override_settings

from apps.newsletter.models import NewsletterCampaign, NewsletterSendLog, NewsletterSubscriber
from apps.newsletter.services.batch import classify_response, send_newsletter
from apps.newsletter.services.email_client import ResendClient
from apps.newsletter.services.rendering import (
    build_html_email, build_text_email, parse_blocks, unsubscribe_url,
)
from apps.newsletter.services.subscriptions import subscribe, unsubscribe

MAIL_SETTINGS = {
    'RESEND_API_KEY': 're_test_key',
    'NEWSLETTER_FROM': 'FootballWorld <news@footballworld.test>',
    'SITE_URL': 'https://footballworld.test',
}


class FakeEmailClient:
    """Accepts every send except for the addresses in ``failing``."""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.calls = []
        self._lock = threading.Lock()

    def send_email(self, sender, to, subject, html, text=None, headers=None):
        with self._lock:
            self.calls.append({'to': to, 'subject': subject, 'html': html, 'text': text, 'headers': headers})
        if to in self.failing:
            return {'data': None, 'error': {'name': 'validation_error', 'message': 'Mailbox unavailable'}}
        return {'data': {'id': f'msg-{to}'}, 'error': None}


def _subscribers(count):
    return [subscribe(f'fan{i}@example.com') for i in range(count)]


class SubscriptionTests(TestCase):
    def test_subscribe_normalizes_and_dedupes(self):
        first = subscribe('  Fan@Example.COM ')
        second = subscribe('fan@example.com')
        self.assertEqual(first.pk, second.pk)
        self.assertEqual(first.email, 'fan@example.com')

    def test_unsubscribe_and_resubscribe_keeps_token(self):
        sub = subscribe('fan@example.com')
        token = sub.unsub_token
        self.assertEqual(unsubscribe(token), 1)
        self.assertEqual(unsubscribe(token), 0)
        sub.refresh_from_db()
        self.assertFalse(sub.is_active)

        again = subscribe('fan@example.com')
        self.assertTrue(again.is_active)
        self.assertEqual(again.unsub_token, token)


class RenderingTests(TestCase):
    @override_settings(SITE_URL='https://footballworld.test')
    def test_unsubscribe_url(self):
        self.assertEqual(
            unsubscribe_url('abc'),
            'https://footballworld.test/api/newsletter/unsubscribe?token=abc',
        )

    def test_message_is_escaped(self):
        html = build_html_email('Hi', 'New kits <script>\nout now', 'simple', 'https://x/u')
        self.assertIn('&lt;script&gt;<br/>out now', html)
        self.assertIn('https://x/u', html)

    def test_pretty_style(self):
        html = build_html_email('Drop day', 'Hello', 'pretty', 'https://x/u')
        self.assertIn('FootballWorld', html)
        self.assertIn('Drop day', html)

    def test_text_email(self):
        self.assertEqual(build_text_email('Hello', 'https://x/u'), 'Hello\n\n---\nUnsubscribe: https://x/u')

    def test_blocks(self):
        blocks = parse_blocks(json.dumps([
            {'type': 'text', 'value': 'New season'},
            {'type': 'text', 'value': '   '},
            {'type': 'image', 'url': 'https://cdn.test/kit.png', 'alt': 'Kit'},
            {'type': 'button', 'label': 'Shop', 'href': 'https://footballworld.test/jerseys'},
        ]))
        self.assertEqual([b['type'] for b in blocks], ['text', 'image', 'button'])
        html = build_html_email('Drop', '', 'simple', 'https://x/u', blocks=blocks)
        self.assertIn('https://cdn.test/kit.png', html)
        self.assertIn('https://footballworld.test/jerseys', html)

    def test_blocks_reject_non_http_links(self):
        with self.assertRaises(Exception):
            parse_blocks([{'type': 'button', 'label': 'x', 'href': 'javascript:alert(1)'}])


class ClassifyResponseTests(TestCase):
    def test_success_needs_an_id(self):
        self.assertTrue(classify_response('a@b.c', {'data': {'id': 'm1'}, 'error': None}).ok)
        outcome = classify_response('a@b.c', {'data': {}, 'error': None})
        self.assertFalse(outcome.ok)
        self.assertEqual(outcome.error, 'Provider did not confirm delivery')

    def test_error_message_surfaced(self):
        outcome = classify_response('a@b.c', {'data': None, 'error': {'message': 'Rate limited'}})
        self.assertFalse(outcome.ok)
        self.assertEqual(outcome.error, 'Rate limited')


@override_settings(**MAIL_SETTINGS)
class SendNewsletterTests(TestCase):
    def test_partial_failure_accounting(self):
        subs = _subscribers(10)
        failing = {s.email for s in subs[:3]}
        client = FakeEmailClient(failing=failing)

        result = send_newsletter('Matchday', 'New kits are in.', client=client)

        self.assertEqual(result['sent'], 7)
        self.assertEqual(result['failed'], 3)
        self.assertEqual(result['total'], 10)
        self.assertFalse(result['ok'])
        self.assertEqual(len(client.calls), 10)
        self.assertEqual(len(result['details']), 3)
        self.assertTrue(all('Mailbox unavailable' in d for d in result['details']))

        campaign = NewsletterCampaign.objects.get(pk=result['campaign_id'])
        self.assertEqual(campaign.status, NewsletterCampaign.Status.FAILED)
        self.assertEqual(campaign.sent_count, 7)
        self.assertEqual(campaign.failed_count, 3)
        self.assertEqual(campaign.logs.filter(status=NewsletterSendLog.Status.FAILED).count(), 3)

    def test_all_sent(self):
        _subscribers(2)
        client = FakeEmailClient()
        result = send_newsletter('Matchday', 'Hello', style='pretty', client=client)
        self.assertTrue(result['ok'])
        campaign = NewsletterCampaign.objects.get(pk=result['campaign_id'])
        self.assertEqual(campaign.status, NewsletterCampaign.Status.SENT)
        self.assertIsNotNone(campaign.sent_at)

    def test_each_email_has_its_own_unsubscribe_link(self):
        sub = _subscribers(1)[0]
        client = FakeEmailClient()
        send_newsletter('Matchday', 'Hello', client=client)
        call = client.calls[0]
        self.assertIn(sub.unsub_token, call['html'])
        self.assertIn(sub.unsub_token, call['text'])
        self.assertIn(sub.unsub_token, call['headers']['List-Unsubscribe'])

    def test_unsubscribed_are_skipped(self):
        subs = _subscribers(3)
        unsubscribe(subs[0].unsub_token)
        client = FakeEmailClient()
        result = send_newsletter('Matchday', 'Hello', client=client)
        self.assertEqual(result['total'], 2)
        self.assertNotIn(subs[0].email, [c['to'] for c in client.calls])

    def test_no_subscribers_short_circuits(self):
        client = FakeEmailClient()
        result = send_newsletter('Matchday', 'Hello', client=client)
        self.assertFalse(result['ok'])
        self.assertEqual(result['error'], 'No subscribers yet.')
        self.assertEqual(client.calls, [])
        self.assertFalse(NewsletterCampaign.objects.exists())

    def test_missing_subject(self):
        _subscribers(1)
        client = FakeEmailClient()
        result = send_newsletter('  ', 'Hello', client=client)
        self.assertEqual(result['error'], 'Missing subject or message.')
        self.assertEqual(client.calls, [])

    @override_settings(RESEND_API_KEY='')
    def test_missing_config(self):
        _subscribers(1)
        client = FakeEmailClient()
        result = send_newsletter('Matchday', 'Hello', client=client)
        self.assertEqual(result['error'], 'Missing RESEND_API_KEY or NEWSLETTER_FROM in env.')
        self.assertEqual(client.calls, [])

    def test_exception_in_one_send_does_not_stop_others(self):
        subs = _subscribers(3)

        class FlakyClient(FakeEmailClient):
            def send_email(self, sender, to, subject, html, text=None, headers=None):
                if to == subs[1].email:
                    raise RuntimeError('boom')
                return super().send_email(sender, to, subject, html, text, headers)

        result = send_newsletter('Matchday', 'Hello', client=FlakyClient())
        self.assertEqual(result['sent'], 2)
        self.assertEqual(result['failed'], 1)
        self.assertIn('boom', result['details'][0])

    def test_resend_creates_new_campaign(self):
        _subscribers(2)
        client = FakeEmailClient()
        send_newsletter('Matchday', 'Hello', client=client)
        send_newsletter('Matchday', 'Hello', client=client)
        self.assertEqual(NewsletterCampaign.objects.count(), 2)
        self.assertEqual(len(client.calls), 4)

    def test_campaign_state_transitions(self):
        campaign = NewsletterCampaign.objects.create(subject='x')
        with self.assertRaises(ValueError):
            campaign.mark_finished(sent=1, failed=0)
        campaign.mark_sending(total_recipients=1)
        with self.assertRaises(ValueError):
            campaign.mark_sending(total_recipients=1)


class ResendClientTests(TestCase):
    def _response(self, status, body):
        resp = mock.Mock(status_code=status)
        resp.json.return_value = body
        return resp

    @mock.patch('apps.newsletter.services.email_client.requests.post')
    def test_success(self, post):
        post.return_value = self._response(200, {'id': 'msg_1'})
        client = ResendClient('re_key', base_url='https://mail.test')
        result = client.send_email('from@x.test', 'to@x.test', 'Hi', '<p>Hi</p>', text='Hi')
        self.assertEqual(result, {'data': {'id': 'msg_1'}, 'error': None})
        args, kwargs = post.call_args
        self.assertEqual(args[0], 'https://mail.test/emails')
        self.assertEqual(kwargs['json']['to'], ['to@x.test'])
        self.assertEqual(kwargs['headers']['Authorization'], 'Bearer re_key')

    @mock.patch('apps.newsletter.services.email_client.requests.post')
    def test_http_error(self, post):
        post.return_value = self._response(422, {'name': 'validation_error', 'message': 'Invalid `to` field'})
        result = ResendClient('re_key', base_url='https://mail.test').send_email('f', 't', 's', 'h')
        self.assertIsNone(result['data'])
        self.assertEqual(result['error']['message'], 'Invalid `to` field')
        self.assertEqual(result['error']['statusCode'], 422)

    @mock.patch('apps.newsletter.services.email_client.requests.post')
    def test_network_error(self, post):
        post.side_effect = requests.exceptions.ConnectionError('refused')
        result = ResendClient('re_key', base_url='https://mail.test').send_email('f', 't', 's', 'h')
        self.assertEqual(result['error']['name'], 'network_error')


@override_settings(**MAIL_SETTINGS)
class NewsletterViewTests(TestCase):
    def setUp(self):
        self.client = Client()
        self.staff = User.objects.create_user('shopadmin', password='test', is_staff=True)
        self.customer = User.objects.create_user('customer', password='test')

    def test_subscribe(self):
        resp = self.client.post(
            '/api/newsletter', data=json.dumps({'email': 'Fan@Example.com'}), content_type='application/json',
        )
        self.assertEqual(resp.json(), {'ok': True})
        self.assertTrue(NewsletterSubscriber.objects.filter(email='fan@example.com').exists())

    def test_subscribe_invalid_email(self):
        resp = self.client.post(
            '/api/newsletter', data=json.dumps({'email': 'not-an-email'}), content_type='application/json',
        )
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()['error'], 'Invalid email')

    def test_unsubscribe(self):
        sub = subscribe('fan@example.com')
        self.assertEqual(self.client.get('/api/newsletter/unsubscribe').status_code, 400)
        resp = self.client.get('/api/newsletter/unsubscribe', {'token': sub.unsub_token})
        self.assertEqual(resp.json(), {'ok': True, 'message': 'Unsubscribed'})
        sub.refresh_from_db()
        self.assertFalse(sub.is_active)

    def test_send_requires_staff(self):
        self.assertEqual(self.client.post('/manage/newsletter/send/').status_code, 401)
        self.client.force_login(self.customer)
        self.assertEqual(self.client.post('/manage/newsletter/send/').status_code, 403)

    def test_send_validation(self):
        self.client.force_login(self.staff)
        resp = self.client.post('/manage/newsletter/send/', {'subject': 'Hi'})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()['error'], 'Missing subject or message.')

    def test_send_and_campaign_detail(self):
        _subscribers(2)
        self.client.force_login(self.staff)
        with mock.patch('apps.newsletter.services.batch.ResendClient', return_value=FakeEmailClient()):
            resp = self.client.post('/manage/newsletter/send/', {'subject': 'Matchday', 'message': 'Hello'})
        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertTrue(data['ok'])
        self.assertEqual(data['sent'], 2)

        campaign = NewsletterCampaign.objects.get(pk=data['campaign_id'])
        self.assertEqual(campaign.created_by, self.staff)

        detail = self.client.get(f"/manage/newsletter/campaigns/{data['campaign_id']}/").json()
        self.assertEqual(detail['status'], 'SENT')
        self.assertEqual(len(detail['logs']), 2)

    def test_send_command(self):
        _subscribers(1)
        with mock.patch('apps.newsletter.services.batch.ResendClient', return_value=FakeEmailClient()):
            out = StringIO()
            call_command('send_newsletter', subject='Matchday', message='Hello', stdout=out)
        self.assertIn('Sent 1/1', out.getvalue())

    def test_send_command_without_subscribers(self):
        with self.assertRaises(CommandError):
            call_command('send_newsletter', subject='Matchday', message='Hello', stdout=StringIO())
