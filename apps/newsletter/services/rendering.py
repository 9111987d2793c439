"""Newsletter bodies: HTML (simple or pretty layout) and plain text.

The body is either the free-text message or the composer's block list
(``contentJson``): text, image and button blocks.
"""

import json
from urllib.parse import urlencode

from django.conf import settings
from django.core.exceptions import ValidationError
from django.template.loader import render_to_string
from django.utils.html import escape
from django.utils.safestring import mark_safe

BRAND = 'FootballWorld'
STYLES = ('simple', 'pretty')
DEFAULT_STYLE = 'simple'
BLOCK_TYPES = ('text', 'image', 'button')


def unsubscribe_url(token):
    return f"{settings.SITE_URL}/api/newsletter/unsubscribe?{urlencode({'token': token})}"


def _is_public_url(value):
    return value.startswith('http://') or value.startswith('https://')


def parse_blocks(content_json):
    """Validate composer blocks. Accepts a JSON string or an already parsed list.

    Empty blocks (no text, no image URL, no button target) are dropped.
    Links must be absolute http(s) URLs.
    """
    if content_json in (None, '', []):
        return []
    if isinstance(content_json, str):
        try:
            content_json = json.loads(content_json)
        except json.JSONDecodeError:
            raise ValidationError('Invalid content JSON.')
    if not isinstance(content_json, list):
        raise ValidationError('Content must be a list of blocks.')

    blocks = []
    for raw in content_json:
        if not isinstance(raw, dict) or raw.get('type') not in BLOCK_TYPES:
            raise ValidationError('Unknown content block.')
        kind = raw['type']
        if kind == 'text':
            value = str(raw.get('value') or '').strip()
            if value:
                blocks.append({'type': 'text', 'value': value})
        elif kind == 'image':
            url = str(raw.get('url') or '').strip()
            href = str(raw.get('href') or '').strip()
            if not url:
                continue
            if not _is_public_url(url) or (href and not _is_public_url(href)):
                raise ValidationError('Images must be public http(s) URLs.')
            blocks.append({'type': 'image', 'url': url, 'alt': str(raw.get('alt') or ''), 'href': href})
        else:
            href = str(raw.get('href') or '').strip()
            if not href:
                continue
            if not _is_public_url(href):
                raise ValidationError('Button links must be http(s) URLs.')
            label = str(raw.get('label') or '').strip() or 'Open'
            blocks.append({'type': 'button', 'label': label, 'href': href})
    return blocks


def message_to_html(message):
    return mark_safe(escape(message).replace('\n', '<br/>'))


def blocks_to_html(blocks):
    return mark_safe(render_to_string('newsletter/blocks.html', {'blocks': blocks}).strip())


def blocks_to_text(blocks):
    lines = []
    for block in blocks:
        if block['type'] == 'text':
            lines.append(block['value'])
        elif block['type'] == 'image':
            if block['href']:
                lines.append(block['href'])
        else:
            lines.append(f"{block['label']}: {block['href']}")
    return '\n\n'.join(lines)


def build_html_email(subject, message, style, unsubscribe_url, blocks=None):
    body = blocks_to_html(blocks) if blocks else message_to_html(message)
    if style not in STYLES:
        style = DEFAULT_STYLE
    return render_to_string(f'newsletter/email_{style}.html', {
        'subject': subject,
        'body': body,
        'brand': BRAND,
        'unsubscribe_url': unsubscribe_url,
    })


def build_text_email(message, unsubscribe_url):
    return f"{message}\n\n---\nUnsubscribe: {unsubscribe_url}"
