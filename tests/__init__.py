"""
webquery tests

Run all tests:
    pytest tests/ -v

Run specific test file:
    pytest tests/test_crawler.py -v
"""
