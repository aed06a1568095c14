"""
Query normalization modules for Physician Search.

Resolves specialty synonyms, corrects and splits locations, and parses
free-text queries into name, specialty and location facets.
"""
