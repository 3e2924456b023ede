"""ACP session client for the nanocode agent."""
