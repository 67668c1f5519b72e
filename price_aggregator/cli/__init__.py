"""Command-line front end for price_aggregator."""
