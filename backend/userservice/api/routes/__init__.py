"""Route Modules — fixed routes owned by the server shell (not pluggable controllers)."""
