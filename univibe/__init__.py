"""UniVibe chat core."""
