"""Crisis preparedness backend."""
