"""Settings loading for factlint."""
