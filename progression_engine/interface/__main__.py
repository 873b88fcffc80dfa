# ABOUTME: Entry point for launching the host session console.
# ABOUTME: Run with: python -m progression_engine.interface

from progression_engine.interface.session_cli import main

if __name__ == "__main__":
    main()
