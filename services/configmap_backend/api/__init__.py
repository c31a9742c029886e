"""HTTP surface: app factory, health probes and the state endpoint."""
