"""Sobe o servidor de documentos (uvicorn)."""
import argparse
import os

import uvicorn

from backend.main import app

def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Servidor de documentos do BillSync")
    parser.add_argument("--host", type=str, default=os.getenv("BILLSYNC_HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=int(os.getenv("BILLSYNC_PORT", "8000")))
    parser.add_argument("--log-level", type=str, default="info")
    return parser.parse_args()

def main() -> int:
    args = parse_args()
    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level)
    return 0

if __name__ == "__main__":
    raise SystemExit(main())
