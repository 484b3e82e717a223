"""Session identity and company access guard."""
