"""
Test suite for Salina Catalog.

Run all tests: pytest
Run unit tests only: pytest tests/unit/
Run specific file: pytest tests/unit/test_bulk_update_service.py -v
"""
