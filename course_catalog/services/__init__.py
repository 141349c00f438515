"""Domain services of the course catalog."""
