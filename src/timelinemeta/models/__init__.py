"""Data models for timelinemeta."""
