"""
Development Server Entry Point
==============================

Usage:
    python run.py              # Development mode with reload
    python run.py --no-reload  # Development mode without reload
"""

import argparse


def main():
    """Run the development server."""
    import uvicorn
    from willskill.core.config import settings

    parser = argparse.ArgumentParser(description="Run the WillSkill admin API development server")
    parser.add_argument(
        "--no-reload",
        action="store_true",
        help="Disable auto-reload",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind to (default: 8000)",
    )
    args = parser.parse_args()

    print(f"\n  {settings.APP_NAME} v{settings.APP_VERSION} ({settings.ENVIRONMENT})")
    print(f"  Server: http://{args.host}:{args.port}\n")

    uvicorn.run(
        "willskill.main:app",
        host=args.host,
        port=args.port,
        reload=not args.no_reload,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
