"""
Matching and ranking modules for Physician Search.
"""
