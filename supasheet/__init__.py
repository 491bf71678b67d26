"""supasheet: spreadsheet import and table administration for a Supabase / Postgres backend."""

__version__ = "0.4.0"
