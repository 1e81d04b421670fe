"""
lexicache Configuration Infrastructure

- settings: process settings from environment / `.env`
- validator: partial config validation with accumulated errors
- models: frozen config snapshots
- loader: YAML config files

Import submodules directly (`from lexicache.core.config.models import ...`).
"""
