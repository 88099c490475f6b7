"""Back-office services: the operations callers (API routes, jobs) invoke."""
