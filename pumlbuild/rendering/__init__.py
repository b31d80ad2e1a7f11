"""PlantUML invocation and output handling."""
