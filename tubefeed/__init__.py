"""tubefeed - self-hosted aggregator for YouTube channel feeds."""
