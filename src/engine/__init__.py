"""CORRIDOR engine — route mapping, entity tracking, and map views."""
