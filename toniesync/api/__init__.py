"""HTTP routes for the Tonie sync service."""
