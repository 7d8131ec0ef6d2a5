"""HTTP API for dbmigrate."""
