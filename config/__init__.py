"""Configuration helpers for the assembly QC service."""

# This package collects runtime configuration assets that can be customised
# without touching the application logic.  ``supabase_schema`` maps logical
# table and column names onto the deployed database; ``production`` holds the
# physical line constants (shift hours, rack size, pace thresholds).
