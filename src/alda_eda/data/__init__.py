"""Loading, validating, reshaping and describing longitudinal tables."""
