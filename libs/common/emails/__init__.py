"""
Marketplace email package.

Modules:
- client: EmailClient for sending templated emails via the notification service

Templates are owned by the notification service; callers only pass a
template type and its data.
"""
