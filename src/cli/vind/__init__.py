"""vind: containers that look and work like virtual machines."""
