"""Infrastructure: adapters, session and persistence implementations."""
