#!/usr/bin/env python3
"""
Run script for the claim intake API.

Usage:
    python run_api.py

Make sure to:
1. Copy .env.example to .env and fill in your API keys
2. Set API_TOKENS to a JSON map of bearer token -> user email
3. Install the tesseract binary for document OCR
"""

import logging
import os
import sys

# Configure logging VERY early, before any other imports that might use it
logging.getLogger("python_multipart").setLevel(logging.WARNING)
logging.getLogger("python_multipart.multipart").setLevel(logging.WARNING)
logging.getLogger("openai").setLevel(logging.WARNING)
logging.getLogger("anthropic").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)

# Add src to path for imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def main():
    """Run the claim intake API server."""
    import uvicorn
    from src.utils.config import get_settings

    settings = get_settings()

    print("=" * 60)
    print("TrueClaim Intake API")
    print("=" * 60)
    print(f"Server: http://{settings.host}:{settings.port}")
    print(f"LLM provider: {settings.llm_provider}")
    print(f"Database: {settings.db_path}")
    print(f"Document storage: {settings.storage_root}/{settings.storage_bucket}")
    print(f"Verification thresholds: {settings.verified_threshold}/{settings.review_threshold}")
    print("=" * 60)
    print()
    print("Endpoints:")
    print(f"  - Health: http://{settings.host}:{settings.port}/health")
    print(f"  - Analyze fraud: POST /claims/analyze-fraud")
    print(f"  - Submit claim: POST /claims")
    print(f"  - Upload documents: POST /claims/{{claim_id}}/documents")
    print()
    if not settings.api_tokens:
        print("WARNING: API_TOKENS is empty, every claim request will get 401")
        print()

    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(
        "src.api.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="info",
    )


if __name__ == "__main__":
    main()
