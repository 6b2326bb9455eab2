#!/usr/bin/env python3
"""
Simple launcher script for the auto-burner.
"""
import argparse
import sys
from autoburner.main import main
import asyncio

if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='Solana creator-fee auto-burner')
    parser.add_argument(
        'mode',
        nargs='?',
        default='loop',
        choices=['loop', 'once'],
        help='Operation mode: loop (default) or once (single cycle)'
    )

    args = parser.parse_args()

    try:
        asyncio.run(main(mode=args.mode))
    except KeyboardInterrupt:
        print("\nBurner stopped by user")
        sys.exit(0)
    except Exception as e:
        print(f"Error: {e}")
        sys.exit(1)
