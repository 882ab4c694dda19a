"""
StepCoach Core

Landmark scoring, session lifecycle and persistence for dance practice.
"""

__version__ = "1.0.0"
