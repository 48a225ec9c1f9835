"""Package-manager specific parsers and registry clients."""
