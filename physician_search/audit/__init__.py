"""
Search history hooks for Physician Search.
"""
