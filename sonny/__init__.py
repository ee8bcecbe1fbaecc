"""Voice-assistant gateway with delegated Google account actions."""
