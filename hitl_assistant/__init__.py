"""Human-in-the-loop email triage assistant"""

__version__ = "1.0.0"
