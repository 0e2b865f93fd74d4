"""Streamlit user interface for partygallery."""
