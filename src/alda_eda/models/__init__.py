"""Model specifications, fitters and grouped fitting."""
