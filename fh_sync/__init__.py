"""FireHydrant environment sync backend."""
