"""HTTP surface over the back-office services."""
