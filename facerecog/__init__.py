"""Face recognition demo core: matching, live recognition and registration."""
