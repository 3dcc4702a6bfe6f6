#!/usr/bin/env python3
"""
Start the FFXIV BiS Solver Web Server

Usage:
    python start_server.py -p GAME_DATA [-c CONFIG] [--port PORT] [--host HOST]

Example:
    python start_server.py -p gamedata.json --port 8080
"""

import argparse
import os
import sys

# Serve modules from the script directory
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from config_loader import DEFAULT_CONFIG_PATH


def main():
    parser = argparse.ArgumentParser(description='FFXIV BiS Solver Web Server')
    parser.add_argument('--port', type=int, default=8000, help='Port to run the server on')
    parser.add_argument('--host', type=str, default='127.0.0.1', help='Host to bind to')
    parser.add_argument('--reload', action='store_true', help='Enable auto-reload for development')
    parser.add_argument('-p', '--game-path', required=True,
                        help='Path to the game data JSON export')
    parser.add_argument('-c', '--config-path', default=DEFAULT_CONFIG_PATH,
                        help=f'Path to configuration YAML file (default: {DEFAULT_CONFIG_PATH})')
    args = parser.parse_args()

    # Read by api.py on first request, also in reloader subprocesses
    os.environ['BIS_GAME_DATA'] = os.path.abspath(args.game_path)
    os.environ['BIS_CONFIG'] = os.path.abspath(args.config_path)

    print("=" * 60)
    print("FFXIV BiS Solver")
    print("=" * 60)
    print()
    print(f"Game data:     {os.environ['BIS_GAME_DATA']}")
    print(f"Configuration: {os.environ['BIS_CONFIG']}")
    print(f"Starting server at http://{args.host}:{args.port}")
    print(f"API Documentation at http://{args.host}:{args.port}/docs")
    print()
    print("Press Ctrl+C to stop the server.")
    print("=" * 60)

    import uvicorn
    uvicorn.run(
        "api:app",
        host=args.host,
        port=args.port,
        reload=args.reload
    )


if __name__ == "__main__":
    main()
