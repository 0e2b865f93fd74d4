"""
Test suite for partygallery.
"""
