"""
Data ingestion modules for Physician Search.
"""
