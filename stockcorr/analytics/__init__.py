"""Pure numerical analytics over price series."""
