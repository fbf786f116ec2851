import os

# production unless the environment says otherwise
os.environ.setdefault("ENV", "production")

from swiftcause import create_app  # noqa: E402

app = create_app()
