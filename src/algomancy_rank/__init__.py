"""Achievement XP and rank tiers for Algomancy deck builders."""

__version__ = "0.1.0"
