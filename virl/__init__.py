"""Virl backend: plan tiers, usage quotas and metered AI generation."""
