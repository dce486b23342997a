"""Polling core: seen-set, normalizer and the polling service."""
