#!/usr/bin/env python3
"""
CLI for claim fraud analysis, OCR and document verification.

Usage:
    python -m src.claims.cli fraud --type Theft --date 2024-05-01 --location "Main St" \
        --description "Laptop stolen from car" --amount 2400
    python -m src.claims.cli ocr fixtures/receipt.png
    python -m src.claims.cli verify --name "Jane Doe" --email jane@example.com \
        --identity id.png --invoice receipt.png
"""

import argparse
import asyncio
import json
import logging
import mimetypes
import sys
from pathlib import Path
from typing import Dict, Optional

from ..utils.config import get_settings
from .config import GenerationConfig
from .errors import ClaimPipelineError
from .fraud import FraudRiskAnalyzer
from .gateway import create_gateway
from .schema import DocumentCategory
from .text_extractor import TesseractEngine, TextExtractionService
from .verifier import DocumentVerifier

NOISY_LOGGERS = ("httpx", "httpcore", "openai", "anthropic", "PIL")


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def guess_mime_type(path: str, declared: Optional[str] = None) -> str:
    """Declared MIME type, or one guessed from the file extension."""
    if declared:
        return declared
    mime_type, _ = mimetypes.guess_type(path)
    return mime_type or "application/octet-stream"


def read_document(extractor: TextExtractionService, path: str, mime_type: Optional[str] = None) -> str:
    """OCR one file from disk."""
    data = Path(path).read_bytes()
    return extractor.extract(data, guess_mime_type(path, mime_type))


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        description='Analyze claims for fraud risk and verify claim documents',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Fraud analysis with the mock generator (no API key needed)
  python -m src.claims.cli fraud --type Fire --date 2024-03-02 --location "12 Oak Rd" \\
      --description "Kitchen fire after stove malfunction" --amount 8000

  # Extract text from an image
  python -m src.claims.cli ocr fixtures/receipt.png

  # Verify documents against claim data using Claude
  python -m src.claims.cli verify --name "Jane Doe" --amount 8000 --invoice receipt.png \\
      --llm-provider claude --pretty
        """
    )

    # Configuration
    parser.add_argument(
        '--llm-provider',
        type=str,
        choices=['claude', 'openai', 'mock'],
        default='mock',
        help='LLM provider to use (default: mock for testing without API key)'
    )
    parser.add_argument(
        '--llm-model',
        type=str,
        help='Specific LLM model to use'
    )
    parser.add_argument(
        '--api-key',
        type=str,
        help='API key for LLM provider (or set ANTHROPIC_API_KEY/OPENAI_API_KEY env var)'
    )
    parser.add_argument(
        '--pretty',
        action='store_true',
        help='Pretty print JSON output'
    )
    parser.add_argument(
        '--verbose',
        '-v',
        action='store_true',
        help='Enable verbose logging'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    # fraud
    fraud = subparsers.add_parser('fraud', help='Score a claim for fraud risk')
    fraud.add_argument('--type', dest='claim_type', required=True, help='Claim type (e.g. Theft)')
    fraud.add_argument('--date', required=True, help='Date of incident (YYYY-MM-DD)')
    fraud.add_argument('--location', required=True, help='Incident location')
    fraud.add_argument('--description', required=True, help='Incident description')
    fraud.add_argument('--amount', required=True, help='Claim amount')

    # ocr
    ocr = subparsers.add_parser('ocr', help='Extract text from a document')
    ocr.add_argument('file', help='Image or PDF file')
    ocr.add_argument('--mime-type', help='Override the MIME type guessed from the extension')
    ocr.add_argument('--lang', default='eng', help='Tesseract language (default: eng)')

    # verify
    verify = subparsers.add_parser('verify', help='Verify documents against claim data')
    verify.add_argument('--name', help='Full name')
    verify.add_argument('--email', help='Email')
    verify.add_argument('--phone', help='Phone')
    verify.add_argument('--type', dest='claim_type', help='Claim type')
    verify.add_argument('--date', help='Date of incident (YYYY-MM-DD)')
    verify.add_argument('--location', help='Incident location')
    verify.add_argument('--description', help='Incident description')
    verify.add_argument('--amount', help='Claim amount')
    verify.add_argument('--identity', help='Identity document file')
    verify.add_argument('--invoice', help='Invoice or receipt file')
    verify.add_argument('--supporting', help='Supporting document file')
    verify.add_argument('--lang', default='eng', help='Tesseract language (default: eng)')

    return parser


def run_fraud(args: argparse.Namespace, config: GenerationConfig) -> dict:
    analyzer = FraudRiskAnalyzer(create_gateway(config))
    fields = {
        "claimType": args.claim_type,
        "dateOfIncident": args.date,
        "incidentLocation": args.location,
        "incidentDescription": args.description,
        "claimAmount": args.amount,
    }
    return asyncio.run(analyzer.analyze(fields)).to_wire()


def run_ocr(args: argparse.Namespace) -> dict:
    extractor = TextExtractionService(TesseractEngine(args.lang))
    text = read_document(extractor, args.file, args.mime_type)
    return {"file": args.file, "text": text}


def run_verify(args: argparse.Namespace, config: GenerationConfig) -> dict:
    extractor = TextExtractionService(TesseractEngine(args.lang))
    documents: Dict[DocumentCategory, str] = {}
    for category in DocumentCategory:
        path = getattr(args, category.value)
        if path:
            documents[category] = read_document(extractor, path)

    fields = {
        "fullName": args.name,
        "email": args.email,
        "phone": args.phone,
        "claimType": args.claim_type,
        "dateOfIncident": args.date,
        "incidentLocation": args.location,
        "incidentDescription": args.description,
        "claimAmount": args.amount,
    }
    verifier = DocumentVerifier(create_gateway(config))
    return asyncio.run(verifier.verify(fields, documents)).to_wire()


def main(argv=None):
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    # Setup logging
    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    settings = get_settings()
    provider_keys = {"claude": settings.anthropic_api_key, "openai": settings.openai_api_key}
    config = GenerationConfig(
        llm_provider=args.llm_provider,
        llm_model=args.llm_model,
        api_key=args.api_key or provider_keys.get(args.llm_provider),
        timeout=settings.generation_timeout,
        max_tokens=settings.generation_max_tokens,
    )
    if args.command != 'ocr':
        logger.info(f"Using LLM provider: {config.llm_provider}, model: {config.llm_model}")
        if not config.validate():
            logger.error(
                f"Invalid configuration: {config.llm_provider} requires API key. "
                "Set --api-key or environment variable."
            )
            sys.exit(1)

    try:
        if args.command == 'fraud':
            output = run_fraud(args, config)
        elif args.command == 'ocr':
            output = run_ocr(args)
        else:
            output = run_verify(args, config)
    except ClaimPipelineError as e:
        logger.error(f"{args.command} failed: {e}")
        print(json.dumps(e.to_dict(), indent=2), file=sys.stderr)
        sys.exit(1)
    except OSError as e:
        logger.error(f"Could not read input: {e}")
        sys.exit(1)

    indent = 2 if args.pretty else None
    print(json.dumps(output, indent=indent, ensure_ascii=False))


if __name__ == '__main__':
    main()
