"""Unit tests for the page translator.

This package contains test modules for all components of the translation engine.
Tests use pytest with asyncio support; model servers are replaced by fake engines and
HTTP calls are mocked via monkeypatch.
"""
