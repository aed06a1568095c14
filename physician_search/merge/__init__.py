"""
Candidate enrichment and merging modules for Physician Search.
"""
