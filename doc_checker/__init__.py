"""
Document Checker - Contradiction Analysis Service
=================================================

A small service for:
1. Uploading documents and extracting their text
2. Detecting contradictions and inconsistencies with a generative model
3. Rendering analysis reports (PDF / JSON / HTML)

Usage quotas are enforced per user and per plan.
"""

__version__ = "1.0.0"
