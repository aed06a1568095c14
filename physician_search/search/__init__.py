"""
Candidate retrieval modules for Physician Search.
"""
