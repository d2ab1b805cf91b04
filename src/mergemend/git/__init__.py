"""Git repository inspection."""
