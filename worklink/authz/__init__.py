"""Route authorization driven by the session state (role and profile gates)."""
