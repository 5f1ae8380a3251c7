"""Franchise booking engine: booking lifecycle, conflict resolution, pricing and ratings."""
