"""Inbound webhook handling."""

from twilix.webhooks.payloads import SmsWebhook, parse_sms_webhook

__all__ = ["SmsWebhook", "parse_sms_webhook"]
