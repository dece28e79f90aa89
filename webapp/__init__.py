"""HTTP front-end for the Formula interpreter."""
