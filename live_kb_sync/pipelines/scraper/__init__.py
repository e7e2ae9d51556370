"""Site scrapers producing the live text artifact."""
