"""
Run the scanner service.

Usage:
    python -m pricescan                     # real webcam + cv2.dnn model
    CLASSIFIER_ADAPTER=mock CAMERA_ADAPTER=mock python -m pricescan

HOST / PORT env vars pick the bind address (default 0.0.0.0:8000).
"""
import os

import uvicorn

from pricescan.services.api import create_app


def main():
    uvicorn.run(create_app(), host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))


if __name__ == "__main__":
    main()
