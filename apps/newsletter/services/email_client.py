import logging
import time

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15


class ResendClient:
    """Minimal client for the Resend transactional email API.

    ``send_email`` never raises for HTTP or network problems. It returns the
    same ``{'data': ..., 'error': ...}`` envelope the provider's SDKs use, so
    callers classify every outcome in one place.
    """

    def __init__(self, api_key, base_url=None, timeout=DEFAULT_TIMEOUT):
        self.base_url = (base_url or settings.RESEND_API_URL).rstrip('/')
        self.timeout = timeout
        self.headers = {
            'Authorization': f'Bearer {api_key}',
            'Content-Type': 'application/json',
        }

    def send_email(self, sender, to, subject, html, text=None, headers=None):
        url = f"{self.base_url}/emails"
        payload = {'from': sender, 'to': [to], 'subject': subject, 'html': html}
        if text:
            payload['text'] = text
        if headers:
            payload['headers'] = headers

        start = time.time()
        try:
            resp = requests.post(url, json=payload, headers=self.headers, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.warning(f"POST {url} failed for {to}: {e}")
            return {'data': None, 'error': {'name': 'network_error', 'message': str(e)}}

        duration = time.time() - start
        logger.info(f"POST {url} [{resp.status_code}] {duration:.1f}s to={to}")

        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if resp.status_code >= 400:
            message = body.get('message') or body.get('error') or f'HTTP {resp.status_code}'
            return {
                'data': None,
                'error': {
                    'name': body.get('name', 'http_error'),
                    'message': str(message),
                    'statusCode': resp.status_code,
                },
            }
        return {'data': body, 'error': None}
