"""Client-side cache and optimistic mutation layer for the EuMatter app."""
