"""Pure helpers shared by services: zone utilities and color contrast."""
