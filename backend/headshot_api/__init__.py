"""Headshot studio API: credits, Stripe checkout reconciliation and headshot generation."""
