"""Onboarding stage progression, drafts and route guarding."""
