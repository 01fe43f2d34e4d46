"""Automates new-hire onboarding from Zendesk intake tickets."""

__version__ = "1.0.0"
