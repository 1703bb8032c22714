"""Rideshare booking engine: trips, seat reservations and their consistency rules."""
