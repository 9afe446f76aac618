"""
twilix: Async client library for the Twilio REST API.

Covers SMS messages, phone number provisioning, chat, conversations and proxy
services, access token minting, and verification of inbound webhook
signatures.
"""

__version__ = "1.0.0"
