#!/usr/bin/env python3
"""
Token Ledger Entry Point

Starts the FastAPI server with a ledger built from TOKEN_LEDGER_* settings.
"""

import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from token_ledger.api import run_server
from token_ledger.config import get_config


if __name__ == "__main__":
    config = get_config()
    print(f"Starting token ledger for {config.token_symbol} ({config.storage_backend} storage)")
    print(f"API available at: http://localhost:{config.api_port}")
    print(f"Documentation at: http://localhost:{config.api_port}/docs")
    print()

    try:
        run_server()
    except KeyboardInterrupt:
        print("\nShutting down token ledger...")
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)
