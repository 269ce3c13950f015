"""Small shared utilities (logging, hashing)."""
