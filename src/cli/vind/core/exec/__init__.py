"""Host command execution for vind."""
