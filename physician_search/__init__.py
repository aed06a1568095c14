"""
Physician Search - Provider Matching and Ranking Engine

Turns a free-text physician query into facets, runs a cascading search
against the NPI provider registry and ranks the candidates with fuzzy
confidence scoring.
"""

__version__ = "1.0.0"
__author__ = "Physician Search Team"
