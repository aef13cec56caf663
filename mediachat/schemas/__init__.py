"""Request / response schemas."""
