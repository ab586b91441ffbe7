"""Ranking core: data model, sequence engine, linkage resolution and attachment flow."""
