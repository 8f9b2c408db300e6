"""CuraGo triage service: symptom-to-specialty triage and doctor ranking."""

__version__ = "0.3.0"
