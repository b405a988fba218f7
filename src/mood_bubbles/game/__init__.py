"""Bubble simulation, spawning and the session loop."""
