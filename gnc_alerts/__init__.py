"""GNC workshop ENARGAS expiration alerts and document pickup tracking."""
