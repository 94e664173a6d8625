"""Notion API access and record parsing."""
