"""
Development server for the Coalition API.
Runs the FastAPI app under uvicorn with logging configured.
"""

import logging
import os

import uvicorn

HOST = os.environ.get("COALITION_HOST", "127.0.0.1")
PORT = int(os.environ.get("COALITION_PORT", "8000"))

if __name__ == "__main__":
    logging.basicConfig(
        level=os.environ.get("COALITION_LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    print(f"Serving Coalition API at http://{HOST}:{PORT}")
    print(f"Open http://{HOST}:{PORT}/docs for the endpoint reference")
    print("Press Ctrl+C to stop")
    uvicorn.run("coalition.api.main:app", host=HOST, port=PORT, reload=bool(os.environ.get("COALITION_RELOAD")))
