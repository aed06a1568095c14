"""
Request orchestration for Physician Search.
"""
