#!/usr/bin/env python3
"""Standalone launcher for the classifier gateway."""

import argparse
import sys


def main():
    """Run the classifier gateway."""
    parser = argparse.ArgumentParser(description="Construction photo classifier gateway")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8001, help="Port to bind to")
    parser.add_argument("--workers", type=int, default=1, help="Number of workers")
    parser.add_argument("--log-level", default="info", choices=["debug", "info", "warning", "error"])
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload (development)")

    args = parser.parse_args()

    try:
        import uvicorn

        print("=" * 60)
        print("Classifier Gateway")
        print("=" * 60)
        print(f"Host: {args.host}")
        print(f"Port: {args.port}")
        print(f"Workers: {args.workers}")
        print(f"Log Level: {args.log_level}")
        print("=" * 60)
        print()
        print("Endpoints:")
        print(f"  - Health: http://{args.host}:{args.port}/health")
        print(f"  - Batch:  http://{args.host}:{args.port}/v1/analyze-batch")
        print("=" * 60)
        print()

        uvicorn.run(
            "classifier_gateway.server:app",
            host=args.host,
            port=args.port,
            workers=args.workers,
            log_level=args.log_level,
            reload=args.reload,
        )
    except ImportError as e:
        print(f"Error: Missing dependency - {e}")
        print()
        print("Please install the project first:")
        print("  pip install -e .")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\n\nServer stopped by user")
        sys.exit(0)


if __name__ == "__main__":
    main()
