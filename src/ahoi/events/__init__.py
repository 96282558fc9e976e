"""Webhook subscriptions, event dispatch and background delivery."""
