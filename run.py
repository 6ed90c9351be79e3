"""Serve the assembly QC API.

Environment variables are read from ``.env`` when present.  The process exits
if Supabase cannot be reached at start-up.
"""

from __future__ import annotations

import logging
import os
import sys

from dotenv import load_dotenv

from assembly_qc import create_app
from assembly_qc.db import ping_store

logger = logging.getLogger("assembly_qc")


def main() -> None:
    load_dotenv()
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = create_app()
    with app.app_context():
        _, error = ping_store()
    if error:
        logger.error("Supabase connection failed: %s", error)
        sys.exit(1)
    logger.info("Supabase connected")

    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", "3000"))
    app.run(host=host, port=port)


if __name__ == "__main__":
    main()
