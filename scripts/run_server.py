#!/usr/bin/env python3
"""
Start the docrag API server.
The server process owns the in-memory vector index and runs the indexing pipeline in the background.
"""

import argparse

import uvicorn

from docrag.api.main import create_app


def main(argv=None):
    parser = argparse.ArgumentParser(description='Serve the docrag retrieval API')
    parser.add_argument('--host', default='127.0.0.1',
                        help='Interface to bind (default: 127.0.0.1)')
    parser.add_argument('--port', type=int, default=8000,
                        help='Port to listen on (default: 8000)')
    parser.add_argument('--no-indexer', action='store_true',
                        help='Do not start the background indexing pipeline')
    args = parser.parse_args(argv)

    app = create_app(start_indexer=False if args.no_indexer else None)
    print(f"🚀 docrag API on http://{args.host}:{args.port}")
    uvicorn.run(app, host=args.host, port=args.port, log_level="info")


if __name__ == "__main__":
    main()
