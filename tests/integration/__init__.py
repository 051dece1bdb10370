"""
Integration tests for the pool sniper.

These tests run the whole bot (dispatcher, filters, engine, tracker and
background tasks) against an in-memory chain adapter.

Run with:
    pytest tests/integration/ -v
"""
