#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
mantohtml Server - Converts man pages to HTML over HTTP
Using FastAPI and uvicorn
"""

import argparse
import asyncio
import io
import logging
import sys

from fastapi import FastAPI, HTTPException
import uvicorn

from api_models import ConvertRequest, ConvertResponse
from man_parser import MANTOHTML_VERSION, ManFatalError, ManParser, ManState
from utils import document_base_path, known_pages_lookup

# Server info
SERVER_NAME = "mantohtml Server"
SERVER_VERSION = MANTOHTML_VERSION

# API Tags for documentation organization
tags_metadata = [
    {
        "name": "Conversion",
        "description": "Convert man page sources into a single HTML document.",
    },
]

app = FastAPI(
    title=SERVER_NAME,
    version=SERVER_VERSION,
    description="""
# mantohtml Server

Converts man pages written with the troff man macros into HTML.

## Features

- **Multiple pages**: all documents of a request share one header and footer
- **Cross-references**: `.BR name (section)` links to pages listed in `known_pages`
- **Diagnostics**: warnings about unsupported macros and escapes are returned with the HTML
""",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    openapi_tags=tags_metadata,
    license_info={
        "name": "Apache-2.0",
        "url": "https://opensource.org/licenses/Apache-2.0",
    },
)


def convert_documents(request: ConvertRequest) -> ConvertResponse:
    """Convert every document of a request into one HTML document"""
    out = io.StringIO()
    converter = ManParser(
        ManState(request.metadata),
        out=out,
        exists=known_pages_lookup(request.known_pages),
    )

    for document in request.documents:
        converter.state.base_path = document_base_path(document.name)
        converter.convert(io.StringIO(document.content), document.name)

    if not converter.finish():
        raise ManFatalError("No '.TH' macro found in any document.")

    return ConvertResponse(html=out.getvalue(), diagnostics=converter.diagnostics)


@app.get("/health", include_in_schema=False)
async def health_check():
    return {
        "status": "ok",
        "service": SERVER_NAME,
        "version": SERVER_VERSION,
    }


@app.post(
    "/convert",
    operation_id="man_convert",
    response_model=ConvertResponse,
    tags=["Conversion"],
    summary="Convert man pages to HTML",
    description="Convert one or more man page sources into a single HTML document.",
)
async def convert_endpoint(request: ConvertRequest) -> ConvertResponse:
    """Convert man pages to HTML

    Local stylesheet files are not read on behalf of HTTP clients; only
    stylesheet URLs are accepted.
    """
    stylesheet = request.metadata.stylesheet
    if stylesheet and not stylesheet.startswith(('http://', 'https://')):
        raise HTTPException(status_code=400, detail="Only http:// or https:// stylesheets are accepted")

    logging.info(f"Converting {len(request.documents)} document(s): "
                 f"{', '.join(d.name for d in request.documents)[:100]}")

    try:
        # Conversion is CPU-bound; keep the event loop free
        return await asyncio.to_thread(convert_documents, request)
    except ManFatalError as e:
        logging.warning(f"Conversion failed: {str(e)}")
        raise HTTPException(status_code=422, detail=str(e))


def main():
    """Main function to set up and run the server"""
    parser = argparse.ArgumentParser(description='mantohtml Server')
    parser.add_argument('--port', type=int, default=4000, help='Port to run the server on')
    parser.add_argument('--host', type=str, default='localhost', help='Host to bind the server to')
    parser.add_argument('--log-level', type=str, choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        default='INFO', help='Logging level')
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stdout,
    )
    # Silence uvicorn access logs but allow warnings
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    logging.info(f"Starting {SERVER_NAME} v{SERVER_VERSION} on {args.host}:{args.port}")
    try:
        uvicorn.run(
            app,
            host=args.host,
            port=args.port,
            log_level="warning",
            access_log=False,
        )
    except Exception as e:
        logging.error(f"Server error: {str(e)}")
        sys.exit(1)


if __name__ == "__main__":
    main()
