"""Core module - Category consistency manager and image pipeline."""
