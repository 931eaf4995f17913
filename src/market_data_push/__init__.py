"""Scheduled crypto market-data pushes to subscribed chats."""
