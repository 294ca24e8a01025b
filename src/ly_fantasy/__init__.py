"""Fantasy league scoring for Taiwan's Legislative Yuan."""
