#!/usr/bin/env python3
"""
Simple launcher script for the wallet gateway.
"""
import argparse
import sys
from wallet_gateway.main import main

if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='Solana Wallet Gateway')
    parser.add_argument('--host', default=None, help='Bind address (default: HOST or 0.0.0.0)')
    parser.add_argument('--port', type=int, default=None, help='Bind port (default: PORT or 8080)')
    parser.add_argument('--reload', action='store_true', help='Reload on code changes (development)')

    args = parser.parse_args()

    try:
        main(host=args.host, port=args.port, reload=args.reload)
    except KeyboardInterrupt:
        print("\nGateway stopped by user")
        sys.exit(0)
    except Exception as e:
        print(f"Error: {e}")
        sys.exit(1)
