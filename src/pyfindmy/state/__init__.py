"""State layer.

The registry in this package is the single owner of device state. All
ingestion paths (bootstrap scan and live changes) merge records through
its ``apply_*`` operations only.
"""
