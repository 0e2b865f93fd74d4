"""
partygallery - Private party photo gallery built with Streamlit

A web application for sharing the photos and videos of a single event:
- Guest sign-in through Cloud IAP
- Photo/video upload with Live Photo pairing and client-side compression
- Social feed with likes, search and sorting
- Bulk ZIP export of selected memories
- Time-based access gate that keeps the gallery locked until the party
"""

__version__ = "0.1.0"
__author__ = "partygallery"
__description__ = "Private party photo gallery built with Streamlit"
