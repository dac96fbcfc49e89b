"""db-tunnel: SSH tunnel through a jump host, then psql."""
