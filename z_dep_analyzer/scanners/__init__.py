"""Converters from third-party scanner output into scan summaries."""
