#!/usr/bin/env python3
"""
SwiftCause dev launcher.

- Local dev:          ./run.py --env development
- Routes dump:        ./run.py --routes
- Gunicorn (prod):    gunicorn "wsgi:app"
"""

from __future__ import annotations

import argparse
import os
import sys

_CONFIG_ALIASES = {
    "dev": "swiftcause.config.DevelopmentConfig",
    "development": "swiftcause.config.DevelopmentConfig",
    "test": "swiftcause.config.TestingConfig",
    "testing": "swiftcause.config.TestingConfig",
    "prod": "swiftcause.config.ProductionConfig",
    "production": "swiftcause.config.ProductionConfig",
}


def parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Run the SwiftCause Flask app.")
    p.add_argument("--host", default=os.getenv("HOST", "127.0.0.1"))
    p.add_argument("--port", type=int, default=int(os.getenv("PORT", "5000")))
    p.add_argument("--env", choices=["development", "testing", "production"], help="Runtime environment")
    p.add_argument("--config", help="Explicit dotted config path or alias (dev/prod/test)")
    p.add_argument("--routes", action="store_true", help="Print the URL map and exit")
    p.add_argument("--reload", action=argparse.BooleanOptionalAction, default=True)
    return p.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    if args.env:
        os.environ["ENV"] = args.env

    from swiftcause import create_app

    config = _CONFIG_ALIASES.get((args.config or "").lower(), args.config) or None
    app = create_app(config)

    if args.routes:
        for rule in sorted(app.url_map.iter_rules(), key=lambda r: r.rule):
            methods = ",".join(sorted(m for m in rule.methods if m not in {"HEAD", "OPTIONS"}))
            print(f"{methods:<12} {rule.rule:<40} {rule.endpoint}")
        return 0

    if app.config.get("ENV") == "production":
        print("⚠️  run.py is a dev server; use gunicorn \"wsgi:app\" in production.", file=sys.stderr)
    app.run(host=args.host, port=args.port, debug=app.debug, use_reloader=args.reload)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
