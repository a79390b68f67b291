"""Session helpers shared by the API blueprints."""
