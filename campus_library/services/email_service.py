"""Transactional email over HTTP.

Brevo is tried first and Resend second. If neither provider accepts the
message the caller gets ``success: False`` with the last error.
"""
import html
import logging
from typing import Any, Dict

import requests
from flask import current_app

logger = logging.getLogger(__name__)


class EmailProviderError(Exception):
    """Raised when a single provider cannot deliver a message."""


def _send_via_brevo(to: str, subject: str, html_content: str, text_content: str) -> Dict[str, str]:
    config = current_app.config
    if not config.get('BREVO_API_KEY'):
        raise EmailProviderError('BREVO_API_KEY not configured')

    sender = {'name': config['MAIL_FROM_NAME'], 'email': config['MAIL_FROM']}
    response = requests.post(
        config['BREVO_API_URL'],
        headers={
            'Content-Type': 'application/json',
            'api-key': config['BREVO_API_KEY'],
        },
        json={
            'sender': sender,
            'to': [{'email': to}],
            'subject': subject,
            'htmlContent': html_content,
            'textContent': text_content,
            'replyTo': sender,
            'headers': {'Auto-Submitted': 'auto-generated'},
        },
        timeout=config['EMAIL_TIMEOUT_SECONDS'],
    )
    if not response.ok:
        raise EmailProviderError(f'Brevo API error: {response.status_code} - {response.text}')

    data = response.json() if response.content else {}
    return {'messageId': data.get('messageId') or data.get('id') or 'unknown', 'provider': 'Brevo'}


def _send_via_resend(to: str, subject: str, html_content: str, text_content: str) -> Dict[str, str]:
    config = current_app.config
    if not config.get('RESEND_API_KEY'):
        raise EmailProviderError('RESEND_API_KEY not configured')

    response = requests.post(
        config['RESEND_API_URL'],
        headers={'Authorization': f"Bearer {config['RESEND_API_KEY']}"},
        json={
            'from': f"{config['MAIL_FROM_NAME']} <{config['MAIL_FROM']}>",
            'to': [to],
            'subject': subject,
            'html': html_content,
            'text': text_content,
        },
        timeout=config['EMAIL_TIMEOUT_SECONDS'],
    )
    if not response.ok:
        raise EmailProviderError(f'Resend API error: {response.status_code} - {response.text}')

    data = response.json() if response.content else {}
    return {'messageId': data.get('id') or 'unknown', 'provider': 'Resend'}


PROVIDERS = (
    ('Brevo', _send_via_brevo),
    ('Resend', _send_via_resend),
)


def send_email(to: str, subject: str, html_content: str, text_content: str) -> Dict[str, Any]:
    """Send one email, falling back through the configured providers.

    Returns:
        Dict with success plus provider and messageId, or error.
    """
    last_error = None
    for name, send in PROVIDERS:
        try:
            result = send(to, subject, html_content, text_content)
        except (EmailProviderError, requests.RequestException, ValueError) as e:
            logger.warning('Email via %s to %s failed: %s', name, to, e)
            last_error = e
            continue
        logger.info('Email sent to %s via %s (%s)', to, result['provider'], result['messageId'])
        return {'success': True, **result}

    return {
        'success': False,
        'error': f'Failed to send email via all providers. Last error: {last_error or "Unknown error"}',
    }


def render_template_email(subject: str, body: str) -> str:
    """Wrap a plain text body in a minimal HTML layout."""
    paragraphs = ''.join(
        f'<p>{html.escape(block).replace(chr(10), "<br>")}</p>'
        for block in body.split('\n\n') if block.strip()
    )
    library_name = html.escape(current_app.config['MAIL_FROM_NAME'])
    return (
        '<!DOCTYPE html><html lang="en"><head><meta charset="UTF-8">'
        f'<title>{html.escape(subject)}</title></head>'
        '<body style="font-family: Arial, sans-serif; color: #333;">'
        f'<h2>{library_name}</h2>{paragraphs}'
        '</body></html>'
    )


def send_reminder_email(to: str, subject: str, body: str) -> Dict[str, Any]:
    return send_email(to, subject, render_template_email(subject, body), body)
