"""Module entrypoint to run `python -m db_tunnel`."""

from db_tunnel.cli import main

if __name__ == "__main__":
    main()
