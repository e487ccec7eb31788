"""grindset - accountability engine for daily coding-practice grinds."""
